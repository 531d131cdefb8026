"""Queue errors.

Each error is an ``HTTPException`` so services can raise it directly and the
API renders it with the right status code.
"""
from typing import Optional

from fastapi import HTTPException


class QueueError(HTTPException):
    status_code = 400

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status_code, detail=detail)


class SessionNotFound(QueueError):
    status_code = 404

    def __init__(self, session_code: str):
        self.session_code = session_code
        super().__init__(f"Session {session_code} not found")


class PollNotFound(QueueError):
    status_code = 404

    def __init__(self, poll_id: int):
        self.poll_id = poll_id
        super().__init__(f"Poll {poll_id} not found")


class InvalidReorderInput(QueueError):
    status_code = 400


class PollNotActive(QueueError):
    status_code = 400

    def __init__(self, poll_id: int):
        self.poll_id = poll_id
        super().__init__(f"Poll {poll_id} is not accepting responses")


class InvalidOption(QueueError):
    status_code = 400


class DuplicateResponse(QueueError):
    status_code = 409

    def __init__(self, poll_id: int, student_id: str):
        super().__init__(f"Student {student_id} already responded to poll {poll_id}")


class TransactionConflict(QueueError):
    status_code = 409


class NoActivePoll(QueueError):
    status_code = 404

    def __init__(self, session_code: str):
        self.session_code = session_code
        super().__init__("No active poll found")


class MCQNotFound(QueueError):
    status_code = 404

    def __init__(self, mcq_id: int):
        self.mcq_id = mcq_id
        super().__init__(f"MCQ {mcq_id} not found or already sent to students")
