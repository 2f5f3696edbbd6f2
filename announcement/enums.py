from enum import StrEnum


class DispatchPolicy(StrEnum):
    SERIALIZED = "serialized"
    CONCURRENT = "concurrent"

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return str(self.value)
