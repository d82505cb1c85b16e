"""
Custom Exceptions for the Signal Pipeline.

These exceptions give the stage endpoints and the advance controller a clear
way to tell retryable failures from configuration problems and lost races.
"""


class ConcurrentModificationError(Exception):
    """
    Raised when an optimistic locking conflict is detected.

    Every pipeline job write is conditioned on the version that was read.
    If another invocation advanced the job in between, the update matches
    zero rows and this is raised.

    Example:
        Trigger A reads job #42 (version=5)
        Trigger B reads job #42 (version=5)
        Trigger A moves the offset -> version becomes 6
        Trigger B tries to move the offset with version=5 -> ConcurrentModificationError

    Recovery:
        The losing invocation rolls back and stops. The winner owns the job.
    """
    def __init__(self, entity_type: str, entity_id: int, message: str = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = message or f"{entity_type} with ID {entity_id} was modified by another process."
        super().__init__(self.message)


class EntityNotFoundError(Exception):
    """
    Raised when a requested entity does not exist in the database.
    """
    def __init__(self, entity_type: str, entity_id: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = f"{entity_type} with ID {entity_id} not found."
        super().__init__(self.message)


class ActiveJobExistsError(Exception):
    """
    Raised when creating a pipeline job while another non-terminal job exists.
    """
    def __init__(self, active_job_id: int):
        self.active_job_id = active_job_id
        self.message = f"Pipeline job {active_job_id} is still active."
        super().__init__(self.message)


class StagePreconditionError(Exception):
    """
    Raised by a stage when configuration makes progress impossible
    (no config row, no visible industries, no eligible profiles...).

    Does not consume a retry: an operator has to fix the data first.
    """
    pass


class ExternalServiceError(Exception):
    """
    Raised when a dependency (Apify, Gemini, Telegram, vector index) fails
    in a way the stage cannot work around. Consumes a retry.
    """
    def __init__(self, service: str, message: str):
        self.service = service
        self.message = f"{service}: {message}"
        super().__init__(self.message)
