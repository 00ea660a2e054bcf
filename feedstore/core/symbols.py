# feedstore/core/symbols.py
import io
import zipfile


def is_symbols_package(payload: bytes) -> bool:
    """A symbols package is an archive shipping .pdb files together with sources under src/."""
    if not payload:
        return False
    try:
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            names = [n.replace("\\", "/").lower() for n in archive.namelist()]
    except zipfile.BadZipFile:
        return False
    has_pdb = any(n.endswith(".pdb") for n in names)
    has_sources = any(n.startswith("src/") and not n.endswith("/") for n in names)
    return has_pdb and has_sources
