"""
Prompt rendering for idea generation.

Rendering is a pure function of the resolved configuration and the request
hints: the random choices (framework, sampled domains/problems/solutions)
are made while loading the config, so the same inputs always produce the same
prompt text.

Template placeholders:
    {framework_name} {framework_description} {framework_template}
    {framework_example} {domains} {problems} {solutions} {criteria}
    {evaluation_schema} {criteria_count} {extra_filters}
    {monetization_models} {target_audiences}
"""
from __future__ import annotations

import json

from ideaforge.core.profile import Criterion, ResolvedConfig

# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = (
    "You are an expert at generating comprehensive software business ideas. "
    "You answer with a single JSON object and nothing else."
)

# =============================================================================
# Default Generation Template
# =============================================================================

DEFAULT_PROMPT_TEMPLATE = """You are an expert at generating comprehensive software business ideas. Generate a new, specific, well-researched software business idea using the following framework and constraints.

**Generation Framework**: {framework_name}
{framework_description}
{framework_template}
{framework_example}

**Constraints** (choose from the options provided):
- **Domain Options** (pick one or combine related ones):
- {domains}

- **Problem Type Options** (select the most relevant):
- {problems}

- **Solution Type Options** (choose the best fit):
- {solutions}

**Monetization Models**: {monetization_models}
**Target Audiences**: {target_audiences}

**Extra Filters**:
  {extra_filters}

**Evaluation Criteria** (score each within its stated range):
{criteria}

---

Generate a unique, viable idea that addresses a real problem in the specified domain. For each evaluation criterion, answer the listed follow-up questions in detail.

Return ONLY valid JSON in this exact format:
```json
{
  "name": "Idea Name (max 60 characters)",
  "domain": "Parent Domain → Subdomain",
  "problem": "Brief problem description",
  "solution": "Brief solution description",
  "quickSummary": "1-2 sentence elevator pitch explaining the value proposition",
  "concreteExample": {
    "currentState": "How users handle this problem today (2-3 sentences with specific pain points)",
    "yourSolution": "Step-by-step walkthrough of how they would use your solution",
    "keyImprovement": "Quantifiable improvements with specific metrics"
  },
  "ideaComponents": {
    "monetization": "Revenue model",
    "targetAudience": "Specific user segment",
    "technology": "Core tech stack needed",
    "marketSize": "Market size category with numbers",
    "estimatedTeamSize": 2,
    "estimatedTeamSizeReasoning": "Minimum team needed to build and launch the MVP"
  },
{evaluation_schema},
  "quickNotes": {
    "strengths": ["3-5 items"],
    "weaknesses": ["3-5 items"],
    "keyAssumptions": ["3-5 items"],
    "nextSteps": ["3-5 items"],
    "references": ["3-5 items"]
  },
  "actionPlan": {
    "nextSteps": [
      {"step": 1, "title": "...", "description": "...", "duration": "...", "blockers": [], "successMetric": "..."}
    ],
    "timeline": {"mvp": "...", "firstRevenue": "...", "breakeven": "..."},
    "criticalPath": ["2-4 blocking items"]
  },
  "tags": ["tag1", "tag2", "tag3"]
}
```

IMPORTANT:
- All {criteria_count} evaluation criteria MUST be present with a numeric score, reasoning and answered questions
- Use specific numbers, metrics, and evidence throughout
- Be realistic and honest in scoring - not everything should be 8-10"""


def format_criteria(criteria: list[Criterion]) -> str:
    """Criteria list for the prompt body."""
    lines = []
    for c in criteria:
        scale = f"{c.min_score:g}-{c.max_score:g}"
        description = f": {c.description}" if c.description else ""
        lines.append(f"- {c.name} ({scale}){description}")
    return "\n".join(lines)


def build_evaluation_schema(criteria: list[Criterion]) -> str:
    """JSON skeleton of the "evaluation" object, one entry per criterion key."""
    blocks = []
    for c in criteria:
        questions = c.questions or ["What evidence supports this score?"]
        question_lines = ",\n".join(
            "        " + json.dumps({"question": q, "answer": "Specific detailed answer"},
                                    ensure_ascii=False)
            for q in questions
        )
        example_score = round((c.min_score + c.max_score) * 0.7)
        blocks.append(
            f'    "{c.key}": {{\n'
            f'      "score": {example_score},\n'
            f'      "reasoning": "2-3 sentences explaining the score with specific evidence",\n'
            f'      "questions": [\n{question_lines}\n      ]\n'
            f"    }}"
        )
    return '  "evaluation": {\n' + ",\n".join(blocks) + "\n  }"


def format_extra_filters(resolved: ResolvedConfig) -> str:
    active = [f for f in resolved.profile.generation.extra_filters if f.enabled]
    if not active:
        return "None"
    return "\n  ".join(f"- {f.render()}" for f in active)


class PromptBuilder:
    """Render generation prompts from a resolved profile."""

    def __init__(self, default_template: str = DEFAULT_PROMPT_TEMPLATE):
        self.default_template = default_template

    def build(
        self,
        resolved: ResolvedConfig,
        domain: str | None = None,
        custom_prompt: str | None = None,
    ) -> str:
        """
        Render the prompt.

        Args:
            resolved: Profile plus the framework/options chosen for the session.
            domain: Domain hint; replaces the sampled domain options.
            custom_prompt: Template overriding the profile's (placeholders
                are still substituted).

        Returns:
            Prompt text.
        """
        profile = resolved.profile
        framework = resolved.framework
        template = (
            custom_prompt
            or profile.generation.prompt_template
            or self.default_template
        )

        if domain:
            domains_display = domain
        else:
            domains_display = "\n- ".join(d.display() for d in resolved.domains) or "Any"

        replacements = {
            "{framework_name}": framework.name,
            "{framework_description}": (
                f"**Description**: {framework.description}" if framework.description else ""
            ),
            "{framework_template}": (
                f"**Template**: {framework.template}" if framework.template else ""
            ),
            "{framework_example}": (
                f"**Example**: {framework.example}" if framework.example else ""
            ),
            "{domains}": domains_display,
            "{problems}": "\n- ".join(resolved.problem_types) or "Any",
            "{solutions}": "\n- ".join(resolved.solution_types) or "Any",
            "{criteria}": format_criteria(profile.criteria),
            "{evaluation_schema}": build_evaluation_schema(profile.criteria),
            "{criteria_count}": str(len(profile.criteria)),
            "{extra_filters}": format_extra_filters(resolved),
            "{monetization_models}": ", ".join(profile.monetization_models) or "Any",
            "{target_audiences}": ", ".join(profile.target_audiences) or "Any",
        }

        prompt = template
        for placeholder, value in replacements.items():
            prompt = prompt.replace(placeholder, value)
        return prompt
