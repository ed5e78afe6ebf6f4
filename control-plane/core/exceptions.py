# control-plane/core/exceptions.py
"""
Mesh control plane exception classes
"""


class MeshError(Exception):
    """Base exception for address allocation and topology operations"""

    error_code = "MESH_ERROR"


class ValidationError(MeshError, ValueError):
    """Malformed subnet string or out-of-range block/host index"""

    error_code = "VALIDATION_ERROR"


class ExhaustedError(MeshError, RuntimeError):
    """No free address block is left in the pool"""

    error_code = "POOL_EXHAUSTED"

    def __init__(self, message: str = "Address pool exhausted. No free /24 block left."):
        super().__init__(message)


class NotFoundError(MeshError, LookupError):
    """Requested record is absent from the supplied fleet snapshot"""

    error_code = "NOT_FOUND"

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} {record_id} not found")
