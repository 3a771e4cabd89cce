"""
Writer — serialize the link receipt to JSON.

Filesystem layout:
    <receipt_dir>/link_receipt.json
"""
import json
from pathlib import Path

from ar2so.core.errors import IoError
from ar2so.io.schema import LinkReceipt

RECEIPT_FILENAME = "link_receipt.json"


def write_receipt(receipt: LinkReceipt, output_dir: Path) -> Path:
    """
    Write link_receipt.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the receipt path.
    """
    path = output_dir / RECEIPT_FILENAME
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(
                receipt.model_dump(mode="json"),
                indent=2,
                sort_keys=True,
            )
            + "\n"
        )
    except OSError as e:
        raise IoError(f"cannot write receipt {path}: {e}") from e
    return path
