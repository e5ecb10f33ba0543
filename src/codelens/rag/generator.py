"""Answer generation over retrieved context: explanation and impact-analysis modes.

Explanation mode returns prose organised under ``## `` headings (sections
may embed fenced ``mermaid`` diagrams). Impact mode asks for a single JSON
object, parsed here into ImpactAnalysis:

    overview, affectedFiles, recommendedApproach, edgeCases, challenges,
    risks, effortBucket (XS|S|M|L|XL), timeRange, detailedBreakdown
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any

from codelens.rag.llm_client import complete

logger = logging.getLogger(__name__)

EFFORT_BUCKETS: tuple[str, ...] = ("XS", "S", "M", "L", "XL")
_DEFAULT_BUCKET = "M"
_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)

_NO_CONTEXT_NOTE = (
    "No source files matched this question (the project may have no indexed "
    "files yet). Say so plainly instead of guessing."
)

_EXPLANATION_PROMPT = """\
You are a helpful assistant explaining a codebase to someone who may not be technical.

Codebase context:
```
{context}
```

Question: {query}

Match the answer to the question:
- Simple, direct questions ("what does X do", "where is Y"): answer in 1-3 plain sentences,
  without file paths or implementation detail.
- Complex or architectural questions: use these sections, each starting with "## ":
  ## Overview
  ## Architecture Diagram   (a ```mermaid``` graph of the flow)
  ## How It Works
  ## Real-World Analogy
  ## Key Points
Use **bold** for key concepts and `code` only when necessary.
{note}"""

_IMPACT_PROMPT = """\
Analyze this code change request and respond with ONLY valid JSON (no markdown, no extra text).

Codebase:
```
{context}
```

Request: {query}

Respond with this exact JSON structure:
{{
  "overview": "2-3 sentences explaining what needs to change",
  "affectedFiles": ["path/as/shown/in/the/File/headers"],
  "recommendedApproach": "1. First step\\n2. Second step\\n3. Testing approach",
  "edgeCases": ["Edge case 1"],
  "challenges": ["Challenge 1"],
  "risks": ["Risk 1"],
  "effortBucket": "M",
  "timeRange": "1-3 days",
  "detailedBreakdown": "Detailed explanation of the work involved"
}}

Effort levels: XS=1-4h, S=4-8h, M=1-3d, L=3-7d, XL=1-4w
Copy file paths exactly as they appear after "--- File:".
Write for a non-technical client.
{note}"""


@dataclass
class ImpactAnalysis:
    """Structured change-impact report."""

    overview: str = ""
    affected_files: list[str] = field(default_factory=list)
    recommended_approach: str = ""
    edge_cases: list[str] = field(default_factory=list)
    challenges: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    effort_bucket: str = _DEFAULT_BUCKET
    time_range: str = "Unknown"
    detailed_breakdown: str = ""
    parsed: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Camel-cased dict matching the JSON contract."""
        data = asdict(self)
        return {
            "overview": data["overview"],
            "affectedFiles": data["affected_files"],
            "recommendedApproach": data["recommended_approach"],
            "edgeCases": data["edge_cases"],
            "challenges": data["challenges"],
            "risks": data["risks"],
            "effortBucket": data["effort_bucket"],
            "timeRange": data["time_range"],
            "detailedBreakdown": data["detailed_breakdown"],
        }


def build_explanation_prompt(query: str, context: str, empty_context: bool = False) -> str:
    return _EXPLANATION_PROMPT.format(
        context=context, query=query, note=_NO_CONTEXT_NOTE if empty_context else ""
    )


def build_impact_prompt(query: str, context: str, empty_context: bool = False) -> str:
    return _IMPACT_PROMPT.format(
        context=context, query=query, note=_NO_CONTEXT_NOTE if empty_context else ""
    )


async def generate_answer(
    query: str,
    context: str,
    *,
    model: str,
    change_request: bool = False,
    empty_context: bool = False,
    temperature: float = 0.7,
    max_tokens: int = 2000,
) -> str:
    """Send the mode-specific prompt to *model* and return the raw answer text."""
    builder = build_impact_prompt if change_request else build_explanation_prompt
    prompt = builder(query, context, empty_context=empty_context)
    answer = await complete(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        temperature=temperature,
    )
    return answer or "No response generated"


# ------------------------------------------------------------------
# Impact JSON parsing
# ------------------------------------------------------------------


def _extract_json(raw: str) -> Any:
    """Parse the JSON object in *raw* (fenced block, bare object, or whole text)."""
    fenced = _FENCED_JSON_RE.search(raw)
    if fenced:
        return json.loads(fenced.group(1))
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        return json.loads(raw[start : end + 1])
    return json.loads(raw)


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def parse_impact_analysis(raw: str) -> ImpactAnalysis:
    """Parse a model response into ImpactAnalysis.

    Unparseable output falls back to a prose report: the first 200
    characters as overview, the full text as approach and breakdown, and the
    default ``M`` bucket. ``parsed`` is False in that case.
    """
    try:
        data = _extract_json(raw)
        if not isinstance(data, dict):
            raise ValueError("impact response is not a JSON object")
    except (ValueError, json.JSONDecodeError) as exc:
        logger.warning("Failed to parse impact analysis JSON: %s", exc)
        return ImpactAnalysis(
            overview=raw[:200],
            recommended_approach=raw,
            time_range="2-3 days",
            detailed_breakdown=raw,
            parsed=False,
        )

    bucket = str(data.get("effortBucket", _DEFAULT_BUCKET)).strip().upper()
    if bucket not in EFFORT_BUCKETS:
        logger.warning("Unknown effort bucket %r, using %s", bucket, _DEFAULT_BUCKET)
        bucket = _DEFAULT_BUCKET

    return ImpactAnalysis(
        overview=str(data.get("overview") or ""),
        affected_files=_str_list(data.get("affectedFiles")),
        recommended_approach=str(data.get("recommendedApproach") or ""),
        edge_cases=_str_list(data.get("edgeCases")),
        challenges=_str_list(data.get("challenges")),
        risks=_str_list(data.get("risks")),
        effort_bucket=bucket,
        time_range=str(data.get("timeRange") or "Unknown"),
        detailed_breakdown=str(data.get("detailedBreakdown") or ""),
    )
