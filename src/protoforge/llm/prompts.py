"""Prompt templates for the generation pipeline and surgical edits.

Every builder returns a ``(system_prompt, user_prompt)`` tuple.
"""

from protoforge.config import GenerationPreferences
from protoforge.models import GenerationPlan

PLAN_JSON_SHAPE = """{
  "id": "unique-plan-id",
  "components": [
    {
      "id": "component-id",
      "name": "Component Name",
      "type": "header|hero|features|form|footer|custom",
      "description": "Brief description",
      "features": ["feature1", "feature2"],
      "estimatedComplexity": "low|medium|high"
    }
  ],
  "architecture": {
    "structure": "Description of HTML structure",
    "styling": "Description of CSS approach",
    "interactions": "Description of JavaScript functionality",
    "responsive": true
  },
  "timeline": {
    "totalMinutes": 5,
    "phases": {
      "planning": 1,
      "generation": 3,
      "documentation": 1
    }
  },
  "dependencies": ["tailwindcss", "vanilla-js"]
}"""


def prompt_plan(prompt: str, preferences: GenerationPreferences) -> tuple[str, str]:
    """Generate the planning prompt pair.

    Args:
        prompt: The user's natural-language request.
        preferences: Output type, framework and styling choices.

    Returns:
        A tuple of (system_prompt, user_prompt).
    """
    system = (
        "You are an expert web developer and UI/UX designer. Your task is to create "
        f"a detailed plan for generating a {preferences.output_type} prototype.\n\n"
        "IMPORTANT: Respond with a valid JSON object that matches this exact structure:\n"
        f"{PLAN_JSON_SHAPE}\n\n"
        "Focus on creating modern, accessible, and responsive designs using "
        f"{preferences.styling} for styling."
    )
    user = f"""Create a detailed plan for this prototype request:

"{prompt}"

Preferences:
- Output Type: {preferences.output_type}
- Framework: {preferences.framework}
- Styling: {preferences.styling}
- Responsive: {preferences.responsive}
- Accessibility: {preferences.accessibility}

Generate a comprehensive plan that breaks down the prototype into logical components and provides a clear architecture overview."""
    return (system, user)


def prompt_section(
    plan: GenerationPlan, section_name: str, preferences: GenerationPreferences
) -> tuple[str, str]:
    """Generate the code prompt for one planned section.

    Args:
        plan: The approved plan.
        section_name: Name of the component to generate.
        preferences: Output type, framework and styling choices.

    Returns:
        A tuple of (system_prompt, user_prompt).
    """
    layout = "responsive" if preferences.responsive else "fixed-width"
    requirements = [
        f"- Use {preferences.styling} for styling",
        f"- Create {layout} designs",
    ]
    if preferences.accessibility:
        requirements.append(
            "- Include accessibility features (ARIA labels, semantic HTML)"
        )
    requirements += [
        "- Write clean, well-organized code with clear section comments",
        "- Give every editable element a stable id attribute",
        "- Ensure code is ready to run without additional setup",
    ]
    system = (
        "You are an expert frontend developer. Generate clean, modern, "
        "production-ready code for web prototypes.\n\n"
        "Requirements:\n" + "\n".join(requirements) + "\n\n"
        "Output format: Provide only the code without explanations or markdown formatting."
    )

    component = plan.component_named(section_name)
    if component is not None:
        details = (
            f"- Name: {component.name}\n"
            f"- Type: {component.type}\n"
            f"- Description: {component.description}\n"
            f"- Features: {', '.join(component.features)}"
        )
    else:
        details = f"Section: {section_name}"

    user = f"""Generate the {section_name} code based on this plan:

Component Details:
{details}

Architecture:
- Structure: {plan.architecture.structure}
- Styling: {plan.architecture.styling}
- Interactions: {plan.architecture.interactions}

Generate complete, production-ready code for this section that integrates well with the overall architecture."""
    return (system, user)


def prompt_documentation(
    code: str, component_name: str, preferences: GenerationPreferences
) -> tuple[str, str]:
    """Generate the documentation prompt for one generated section."""
    system = (
        "You are a technical writer specializing in frontend documentation. "
        "Create clear, concise documentation for code components. Focus on purpose "
        "and functionality, customization instructions, key features and "
        "interactions. Keep documentation practical and developer-friendly."
    )
    user = f"""Create documentation for this {component_name} component:

```
{code}
```

Preferences: {preferences.output_type}, {preferences.styling} styling

Provide clear documentation covering the component's purpose, features, and customization options."""
    return (system, user)


def prompt_surgical_edit(code: str, instruction: str) -> tuple[str, str]:
    """Generate a prompt asking for one minimal, targeted change."""
    system = (
        "You are a precise code editor that makes ONLY the specific change requested.\n\n"
        "IMPORTANT RULES:\n"
        "1. Make ONLY the exact change described in the instruction\n"
        "2. Do NOT modify any other part of the code\n"
        "3. Do NOT add new features or sections\n"
        "4. Do NOT change the overall structure or layout\n"
        "5. Return ONLY the modified code without explanations"
    )
    user = f"""Current code:
{code}

Edit Instruction: {instruction}

Return the code with ONLY the requested change applied."""
    return (system, user)


def as_messages(prompts: tuple[str, str]) -> list[dict[str, str]]:
    """Turn a (system, user) pair into gateway chat messages."""
    system, user = prompts
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]
