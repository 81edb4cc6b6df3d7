import shutil
import subprocess


class ClipboardTools:
    """Copy text to the system clipboard using whichever tool is installed."""

    COMMANDS = [
        ["pbcopy"],
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
        ["clip"],
    ]

    @classmethod
    def copy(cls, text: str) -> None:
        """Copy ``text``; raise ``RuntimeError`` when no tool succeeds."""
        for cmd in cls.COMMANDS:
            if shutil.which(cmd[0]) is None:
                continue
            result = subprocess.run(
                cmd,
                input=text,
                capture_output=True,
                text=True,
            )
            if result.returncode != 0:
                raise RuntimeError(result.stderr.strip() or f"{cmd[0]} failed")
            return
        raise RuntimeError("no clipboard tool available")
