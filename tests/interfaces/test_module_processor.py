"""Tests for ModuleProcessor interface and related models."""

import pytest
from datetime import datetime
from pydantic import ValidationError

from src.interfaces.module_processor import (
    ModuleProcessor,
    ProcessingResult,
    ModuleStatus
)


class TestProcessingResult:
    """Test cases for ProcessingResult Pydantic model."""

    def test_valid_processing_result(self):
        """Test creating a valid ProcessingResult."""
        result = ProcessingResult(
            success=True,
            records_processed=1250,
            metadata={"source": "uk_counties", "dry_run": False},
            execution_time=15.5
        )

        assert result.success is True
        assert result.records_processed == 1250
        assert result.errors == []
        assert result.metadata["source"] == "uk_counties"
        assert result.execution_time == 15.5

    def test_processing_result_with_errors(self):
        """Test ProcessingResult carrying error messages."""
        result = ProcessingResult(
            success=False,
            records_processed=0,
            errors=["Region source not found: data/uk_counties.geojson"],
            execution_time=0.2
        )

        assert result.success is False
        assert len(result.errors) == 1

    @pytest.mark.parametrize("field,value", [("records_processed", -5), ("execution_time", -1.0)])
    def test_negative_values_invalid(self, field, value):
        """Test that negative counts and durations are rejected."""
        kwargs = {"success": True, "records_processed": 10, "execution_time": 1.0}
        kwargs[field] = value

        with pytest.raises(ValidationError) as exc_info:
            ProcessingResult(**kwargs)

        assert any("greater than or equal to 0" in str(error) for error in exc_info.value.errors())


class TestModuleStatus:
    """Test cases for ModuleStatus Pydantic model."""

    def test_valid_module_status(self):
        """Test creating a valid ModuleStatus."""
        last_run = datetime.now()
        status = ModuleStatus(
            module_name="boundary_assignment",
            is_configured=True,
            last_run=last_run,
            status="ready",
            health_check=True
        )

        assert status.module_name == "boundary_assignment"
        assert status.last_run == last_run
        assert status.status == "ready"

    def test_module_status_without_last_run(self):
        """Test ModuleStatus with no last_run."""
        status = ModuleStatus(
            module_name="boundary_assignment",
            is_configured=False,
            status="error",
            health_check=False
        )

        assert status.last_run is None
        assert status.model_dump()["last_run"] is None

    def test_module_status_rejects_unknown_status(self):
        """Test that status is limited to the known lifecycle values."""
        with pytest.raises(ValidationError):
            ModuleStatus(
                module_name="boundary_assignment",
                is_configured=True,
                status="sleeping",
                health_check=True
            )


class TestModuleProcessor:
    """Test cases for ModuleProcessor abstract base class."""

    def test_cannot_instantiate_abstract_class(self):
        """Test that ModuleProcessor cannot be instantiated directly."""
        with pytest.raises(TypeError) as exc_info:
            ModuleProcessor()

        assert "Can't instantiate abstract class" in str(exc_info.value)

    def test_abstract_methods_required(self):
        """Test that all abstract methods must be implemented in subclasses."""

        class IncompleteModule(ModuleProcessor):
            pass

        with pytest.raises(TypeError) as exc_info:
            IncompleteModule()

        error_message = str(exc_info.value)
        for method in ["validate_configuration", "process", "get_status"]:
            assert method in error_message

    def test_concrete_implementation_works(self):
        """Test that a complete implementation can be instantiated and run."""

        class ConcreteModule(ModuleProcessor):

            def __init__(self, config_loader):
                self.config_loader = config_loader

            def validate_configuration(self) -> bool:
                return True

            def process(self, dry_run: bool = False) -> ProcessingResult:
                return ProcessingResult(
                    success=True,
                    records_processed=10,
                    metadata={"dry_run": dry_run},
                    execution_time=1.0
                )

            def get_status(self) -> ModuleStatus:
                return ModuleStatus(
                    module_name="concrete_module",
                    is_configured=True,
                    status="ready",
                    health_check=True
                )

        module = ConcreteModule("mock_config_loader")

        assert module.validate_configuration() is True
        assert module.process(dry_run=True).metadata == {"dry_run": True}
        assert module.get_status().status == "ready"
