"""
Base Use Case

Provides the foundation for all use cases in the application layer.
Implements common patterns like throttling, logging, validation, and
translation of typed failures into error responses.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from ..services.governor import Governor

logger = logging.getLogger(__name__)

# Type variables for request and response
TRequest = TypeVar("TRequest", bound="UseCaseRequest")
TResponse = TypeVar("TResponse", bound="UseCaseResponse")

INVALID_INPUT = "INVALID_INPUT"
INTERNAL_FAULT = "INTERNAL_FAULT"


@dataclass(kw_only=True)
class UseCaseRequest:
    """
    Base class for use case requests.

    ``client_id`` identifies the caller for throttling (for example a
    network address); requests without one are not throttled.
    """

    request_id: UUID = field(default_factory=uuid4)
    correlation_id: UUID | None = None
    client_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class UseCaseResponse:
    """Base class for use case responses."""

    success: bool = False
    data: Any | None = None
    error: str | None = None
    error_code: str | None = None
    error_details: dict[str, Any] | None = None
    request_id: UUID | None = None

    @classmethod
    def success_response(cls, data: Any, request_id: UUID) -> "UseCaseResponse":
        """Create a successful response."""
        return cls(success=True, data=data, request_id=request_id)

    @classmethod
    def error_response(
        cls,
        error: str,
        request_id: UUID,
        error_code: str | None = None,
        error_details: dict[str, Any] | None = None,
    ) -> "UseCaseResponse":
        """Create an error response."""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            error_details=error_details,
            request_id=request_id,
        )


class UseCase(ABC, Generic[TRequest, TResponse]):
    """
    Abstract base class for all use cases.

    Subclasses set ``operation_class`` to the rate limit bucket they count
    against and ``response_class`` to the response type they return.
    """

    operation_class: ClassVar[str | None] = None
    response_class: ClassVar[type[UseCaseResponse]] = UseCaseResponse

    def __init__(self, name: str | None = None, governor: "Governor | None" = None) -> None:
        """
        Initialize use case.

        Args:
            name: Optional name for the use case (defaults to class name)
            governor: Optional throttling/credit governor
        """
        self.name = name or self.__class__.__name__
        self.governor = governor
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    async def execute(self, request: TRequest) -> TResponse:
        """
        Execute the use case.

        Throttle, validate, then process. Typed failures (anything carrying
        an ``error_code``) become error responses with that code; anything
        else is logged with its traceback and reported as an internal fault.

        Args:
            request: The use case request

        Returns:
            The use case response
        """
        request_id = request.request_id

        self.logger.info(
            f"Executing {self.name}",
            extra={
                "request_id": str(request_id),
                "use_case": self.name,
            },
        )

        try:
            if self.governor is not None and self.operation_class is not None:
                self.governor.throttle(self.operation_class, request.client_id)

            # Validate the request
            validation_error = await self.validate(request)
            if validation_error:
                self.logger.warning(
                    f"Validation failed for {self.name}: {validation_error}",
                    extra={"request_id": str(request_id)},
                )
                return self._create_error_response(validation_error, request_id, INVALID_INPUT)

            # Execute the business logic
            response = await self.process(request)

            self.logger.info(
                f"Successfully executed {self.name}",
                extra={
                    "request_id": str(request_id),
                    "success": response.success,
                },
            )

            return response

        except Exception as e:
            error_code = getattr(e, "error_code", None)
            if error_code is None:
                self.logger.error(
                    f"Error executing {self.name}: {e}",
                    extra={"request_id": str(request_id)},
                    exc_info=True,
                )
                return self._create_error_response(str(e), request_id, INTERNAL_FAULT)

            self.logger.warning(
                f"{self.name} failed: {e}",
                extra={"request_id": str(request_id), "error_code": error_code},
            )
            details = dict(getattr(e, "details", None) or {})
            retry_after = getattr(e, "retry_after", None)
            if retry_after is not None:
                details["retry_after"] = retry_after
            return self._create_error_response(str(e), request_id, error_code, details or None)

    @abstractmethod
    async def validate(self, request: TRequest) -> str | None:
        """
        Validate the request.

        Args:
            request: The request to validate

        Returns:
            Error message if validation fails, None otherwise
        """
        pass

    @abstractmethod
    async def process(self, request: TRequest) -> TResponse:
        """
        Process the request and execute business logic.

        Args:
            request: The validated request

        Returns:
            The response
        """
        pass

    def _create_error_response(
        self,
        error: str,
        request_id: UUID,
        error_code: str | None = None,
        error_details: dict[str, Any] | None = None,
    ) -> TResponse:
        """Create an error response of this use case's response type."""
        return self.response_class.error_response(  # type: ignore[return-value]
            error, request_id, error_code, error_details
        )
