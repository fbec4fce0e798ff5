"""
Task-type catalog for the document-processing pipeline.
The list is static; tasks carry the code/name pair that was picked from it.
"""

from typing import Dict, List, Optional

TASK_TYPES: List[Dict[str, str]] = [
    {"code": "1001-1", "name": "Keying/Scanning/OCR/Script Running"},
    {"code": "1006-1", "name": "Int. Revised Correction"},
    {"code": "1002-1", "name": "Paging"},
    {"code": "1007-1", "name": "II. Rev. Crx."},
    {"code": "1003-1", "name": "Corr./Paging check"},
    {"code": "1008-1", "name": "Check II. Rev. Crx."},
    {"code": "2001-1", "name": "Art Rendering"},
    {"code": "2002-1", "name": "Art crx."},
    {"code": "2003-1", "name": "Art rev. crx."},
    {"code": "2004-1", "name": "2nd Rev. Art Crx."},
    {"code": "9999-1", "name": "Misc./Training/other type job"},
]

TASK_TYPE_MAP = {t["code"]: t for t in TASK_TYPES}


def get_task_type_by_code(code: Optional[str]) -> Optional[Dict[str, str]]:
    if not code:
        return None
    return TASK_TYPE_MAP.get(code.strip())


def list_task_types() -> List[Dict[str, str]]:
    return [dict(t) for t in TASK_TYPES]
