"""
Prompt templates.

Every system prompt ends with the same three-section output contract built
from the extractor's marker constants, so changing the contract means
touching extractor.py and this file together. The reader's role picks the
focus list appended to each system prompt.
"""

from .extractor import INSIGHTS_MARKER, RECOMMENDATIONS_MARKER, SUMMARY_MARKER
from .schemas import INSIGHT_TYPES, UserContext


INSIGHT_SCHEMA = (
    f'{{"type": "{"|".join(INSIGHT_TYPES)}", "title": "Insight title", '
    '"content": "Detailed insight", "confidence_score": 0.85, "metadata": {}}'
)

RECOMMENDATION_SCHEMA = (
    '{"id": "unique-id", "title": "Recommendation title", "description": "Brief description", '
    '"impact": "High|Medium|Low", "effort": "High|Medium|Low", "category": "business_category"}'
)

DETAILED_RECOMMENDATION_SCHEMA = (
    '{"id": "unique-id", "title": "Recommendation title", "description": "Brief description", '
    '"impact": "High|Medium|Low", "effort": "High|Medium|Low", "category": "business_category", '
    '"details": "Detailed explanation", "actionSteps": ["Step 1", "Step 2"]}'
)


def section_contract(
    summary_hint: str = "2-3 paragraph business summary",
    recommendation_schema: str = RECOMMENDATION_SCHEMA,
) -> str:
    return (
        "Your response must follow this exact structure, with each marker on its own line:\n\n"
        f"{SUMMARY_MARKER}\n[{summary_hint}]\n\n"
        f"{INSIGHTS_MARKER}\n[Valid JSON array of insights, each with this format: {INSIGHT_SCHEMA}]\n\n"
        f"{RECOMMENDATIONS_MARKER}\n[Valid JSON array of recommendations, each with this format: "
        f"{recommendation_schema}]\n\n"
        "Do not add any other sections."
    )

DEFAULT_ROLE_FOCUS = "business_analyst"

ROLE_FOCUS = {
    "data_scientist": (
        "Statistical rigor and significance of the patterns you report",
        "Correlations worth testing and candidate predictive features",
        "Machine learning and predictive modeling opportunities",
        "Preprocessing the data would need before modeling",
        "Model evaluation approaches and metrics",
    ),
    "data_engineer": (
        "Data structure, completeness and quality issues",
        "Schema design and column type improvements",
        "Data pipeline efficiency and reliability",
        "Storage and performance considerations",
        "Data governance and security",
    ),
    "executive": (
        "Strategic implications in plain business language",
        "Quantified business impact and ROI",
        "Risks and opportunities for competitive positioning",
        "Decisions leadership should take next",
        "An executive-level implementation roadmap",
    ),
    "business_analyst": (
        "Operational insights and process optimization",
        "Business metrics and KPI analysis",
        "Decision support for day-to-day planning",
        "Practical implementation strategies",
        "Actionable recommendations with clear ROI",
    ),
}


def role_key(ctx: UserContext) -> str:
    key = (ctx.role or DEFAULT_ROLE_FOCUS).strip().lower().replace(" ", "_").replace("-", "_")
    return key if key in ROLE_FOCUS else DEFAULT_ROLE_FOCUS


def role_focus(ctx: UserContext) -> str:
    """Numbered focus list for the reader's role; unknown roles get the business analyst list."""
    lines = [f"{i}. {item}" for i, item in enumerate(ROLE_FOCUS[role_key(ctx)], start=1)]
    return f"The reader is a {_role(ctx)}. Focus on:\n" + "\n".join(lines)


def _industry(ctx: UserContext) -> str:
    return "business" if ctx.industry in (None, "general") else ctx.industry


def _role(ctx: UserContext) -> str:
    return (ctx.role or "business_analyst").replace("_", " ")


def openai_system_prompt(ctx: UserContext) -> str:
    return (
        f"You are an expert data analyst specializing in {_industry(ctx)} analytics. "
        "You provide actionable business insights and recommendations based on data analysis.\n\n"
        + role_focus(ctx)
        + "\n\n"
        + section_contract()
    )


def openai_user_prompt(ctx: UserContext, data_context: str) -> str:
    return (
        f"Please analyze this {_industry(ctx)} data and provide insights for a {_role(ctx)}:\n\n"
        f"{data_context}\n"
        "Also cover:\n"
        "1. Business impact and opportunities\n"
        "2. Data quality and reliability insights\n"
        "3. Industry-specific patterns and trends"
    )


def claude_system_prompt(ctx: UserContext) -> str:
    return (
        f"You are an expert business data analyst specializing in {_industry(ctx)} analytics. "
        "You provide comprehensive, actionable insights and strategic recommendations.\n\n"
        + role_focus(ctx)
        + "\n\n"
        + section_contract(
            summary_hint="2-3 paragraphs of executive summary focusing on business impact and key findings",
            recommendation_schema=DETAILED_RECOMMENDATION_SCHEMA,
        )
    )


def claude_user_prompt(ctx: UserContext, data_context: str) -> str:
    return (
        f"Please analyze this {_industry(ctx)} dataset and provide strategic insights:\n\n"
        f"{data_context}\n"
        "Key focus areas:\n"
        "1. Business opportunities and risks\n"
        "2. Data-driven strategic recommendations\n"
        "3. Operational improvements\n"
        f"4. {_industry(ctx).capitalize()}-specific insights for a {_role(ctx)}\n"
        "5. Actionable next steps with clear implementation guidance"
    )


def groq_system_prompt(ctx: UserContext) -> str:
    return (
        "You are a business data analyst expert. Analyze data and provide structured business insights.\n\n"
        + role_focus(ctx)
        + "\n\n"
        + section_contract(summary_hint="One business summary paragraph")
    )


def groq_user_prompt(ctx: UserContext, data_context: str) -> str:
    return (
        f"Analyze this {_industry(ctx)} data for a {_role(ctx)}:\n\n"
        f"{data_context}\n"
        "Provide actionable business insights and recommendations."
    )


def gemini_system_prompt(ctx: UserContext) -> str:
    return (
        f"You are a senior data analyst working with {_industry(ctx)} datasets. "
        "Ground every insight in the statistics provided and keep recommendations concrete.\n\n"
        + role_focus(ctx)
        + "\n\n"
        + section_contract()
        + "\n\nOutput plain text with the three markers; do not wrap the whole answer in JSON."
    )


def gemini_user_prompt(ctx: UserContext, data_context: str) -> str:
    return (
        f"Dataset context:\n{data_context}\n"
        "Analyze the dataset and respond using the required SUMMARY / INSIGHTS / RECOMMENDATIONS structure."
    )
