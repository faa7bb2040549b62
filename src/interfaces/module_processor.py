"""Module Processor Interface

This module defines the abstract base class and data models that every processing
module (boundary import, tower assignment) implements so that runs are started,
validated and reported the same way.
"""

from abc import ABC, abstractmethod
from pydantic import BaseModel, Field
from typing import Literal, Optional, Dict, List, Any
from datetime import datetime


class ProcessingResult(BaseModel):
    """Result data model for module processing operations.

    Standardizes the return value of a processing run: success flag, number of
    records touched, error messages, free-form metadata and timing.
    """

    success: bool = Field(..., description="Whether the processing completed successfully")
    records_processed: int = Field(ge=0, description="Number of records processed")
    errors: List[str] = Field(default_factory=list, description="List of error messages if any")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional processing metadata")
    execution_time: float = Field(ge=0.0, description="Processing execution time in seconds")


class ModuleStatus(BaseModel):
    """Status data model for module health and configuration reporting."""

    module_name: str = Field(..., description="Name of the processing module")
    is_configured: bool = Field(..., description="Whether the module is properly configured")
    last_run: Optional[datetime] = Field(None, description="Timestamp of the last successful processing run")
    status: Literal["ready", "running", "error", "disabled"] = Field(
        ..., description="Current module status"
    )
    health_check: bool = Field(..., description="Result of the most recent health check")


class ModuleProcessor(ABC):
    """Abstract base class for all processing modules.

    Concrete modules receive the shared ConfigLoader, validate their own
    configuration, run with an optional dry-run flag and report their status.
    """

    @abstractmethod
    def __init__(self, config_loader):
        """Initialize module with shared configuration.

        Args:
            config_loader: ConfigLoader instance providing access to framework configuration
        """
        pass

    @abstractmethod
    def validate_configuration(self) -> bool:
        """Validate module-specific configuration.

        Returns:
            bool: True if configuration is valid and complete, False otherwise
        """
        pass

    @abstractmethod
    def process(self, dry_run: bool = False) -> ProcessingResult:
        """Execute module processing logic.

        With dry_run set, all computation happens but nothing is written back
        to storage.

        Args:
            dry_run: If True, perform all processing logic without making actual changes

        Returns:
            ProcessingResult: Standardized result object with success status, metrics, and errors
        """
        pass

    @abstractmethod
    def get_status(self) -> ModuleStatus:
        """Get current module processing status.

        Returns:
            ModuleStatus: Current module status and health information
        """
        pass
