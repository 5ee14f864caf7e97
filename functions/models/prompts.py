# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


"""Prompt templates for floor-plan fire-risk analysis."""

import json
from typing import Any

PREVENTIVE_SYSTEM_INSTRUCTION = (
    "You are an architect specialised in fire safety. Perform a preventive "
    "analysis of the floor plan."
)

PREVENTIVE_PROMPT = """Analyse this plan. Return ONLY valid JSON (no Markdown) with this exact structure:
{
  "summary": "General description",
  "high_risk_zones": [{"name": "Zone", "risk_level": 80, "reason": "..."}],
  "evacuation_routes": ["Route 1"],
  "access_points": ["Access 1"],
  "fire_propagation": {"estimated_time": "15 min", "critical_zones": []},
  "safety_recommendations": ["Advice 1"],
  "overall_risk_score": 5
}"""

OPERATIONAL_SYSTEM_INSTRUCTION = """You are an operational firefighting expert (incident commander).
A tactical analysis is required. Use the French fire-service vocabulary: SITAC, ZRA (zones à risque accru), VE (voies engins), reconnaissance.
Context supplied by the owner: {context_json}."""

OPERATIONAL_DEFAULT_INSTRUCTION = (
    "Produce a complete operational report for an intervention."
)

OPERATIONAL_PROMPT = """{instruction}

IMPORTANT: Return ONLY valid JSON (no Markdown) with this exact structure:
{{
  "operational_summary": "Summary of the situation and what is at stake.",
  "access_points": [{{"id": "A1", "location": "Facade X", "description": "..."}}],
  "evacuation_routes": [{{"name": "Corridor A", "description": "..."}}],
  "risk_zones": [{{"zone": "Kitchen", "risk": "Gas/Electricity", "tactical_advice": "Cut the supply"}}],
  "tactical_recommendations": ["Action 1", "Action 2"]
}}"""

PREVENTIVE_KEYS = (
    "summary",
    "high_risk_zones",
    "evacuation_routes",
    "access_points",
    "fire_propagation",
    "safety_recommendations",
    "overall_risk_score",
)

OPERATIONAL_KEYS = (
    "operational_summary",
    "access_points",
    "evacuation_routes",
    "risk_zones",
    "tactical_recommendations",
)


def make_preventive_prompt() -> str:
    return f"{PREVENTIVE_SYSTEM_INSTRUCTION}\n\n{PREVENTIVE_PROMPT}"


def make_operational_prompt(
    context_data: Any = None, prompt_instruction: str | None = None
) -> str:
    system = OPERATIONAL_SYSTEM_INSTRUCTION.format(
        context_json=json.dumps(context_data, ensure_ascii=False)
    )
    user = OPERATIONAL_PROMPT.format(
        instruction=prompt_instruction or OPERATIONAL_DEFAULT_INSTRUCTION
    )
    return f"{system}\n\n{user}"
