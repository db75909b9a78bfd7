"""Exception hierarchy for hh-responder."""


class ResponderError(Exception):
    """Base class for all hh-responder errors."""


class StageError(ResponderError):
    """An error raised on behalf of a named filter stage."""

    def __init__(self, stage: str, cause: BaseException | str) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage}: {cause}")


class FilterValidationError(StageError):
    """A filter rejected its configuration before the pipeline ran."""


class FilterError(StageError):
    """A filter failed while being applied to the vacancies."""


class GenerationError(ResponderError):
    """The content-generation provider did not produce usable text."""


class EmptyResponseError(GenerationError):
    """The provider answered successfully but with no text."""


class QuotaDelayTooLongError(GenerationError):
    """The provider asked to wait longer than the configured maximum."""

    def __init__(self, delay: float, limit: float) -> None:
        self.delay = delay
        self.limit = limit
        super().__init__(
            f"provider requested retry in {delay:.1f}s which exceeds the maximum of {limit:.1f}s"
        )


class ResponseParseError(ResponderError):
    """The provider response is not a JSON object."""


class ExcludeFileError(ResponderError):
    """The exclude file exists but cannot be read or written."""


class HeadHunterError(ResponderError):
    """The listing API returned an unexpected status or payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
