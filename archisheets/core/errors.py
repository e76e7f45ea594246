from __future__ import annotations


class ProvisioningError(RuntimeError):
    """
    A structural provisioning step (folder, spreadsheet, move) failed.

    Nothing created before the failing step is rolled back; `step` tells the
    operator where to pick up by hand.
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
