from dataclasses import dataclass

SEVERITIES = ("info", "warning")


@dataclass(frozen=True)
class Alert:
    severity: str   # 'info' | 'warning'
    message: str

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown alert severity: {self.severity!r}")

    def to_dict(self):
        return {"type": self.severity, "message": self.message}
