##########################################################################################
#
# Script name: render.py
#
# Description: JSON serialization of the response payload.
#
##########################################################################################

import json
from pathlib import Path

from .config import BUCKET_SLUGS


# ****************************************************************************************
# Functions
# ****************************************************************************************


def bias_breakdown(payload: dict) -> dict[str, int]:
    counts = {slug: 0 for slug in BUCKET_SLUGS}
    counts['unclassified'] = 0
    for article in payload.get('articles', []):
        bias = article.get('bias') or 'unclassified'
        counts[bias if bias in counts else 'unclassified'] += 1
    return counts


def render_payload(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=True, indent=2)


def write_payload(payload: dict, output_path: str) -> Path:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_payload(payload) + '\n', encoding='utf-8')
    return path
