from zoom_connector.models.schemas import SummaryDetail

DISCLAIMER = "AI-generated content may be inaccurate or misleading. Always check for accuracy."


def to_document(topic: str, meeting_date: str, detail: SummaryDetail) -> str:
    """
    Render an AI meeting summary as a plain-text document.

    The overview block is only written when the overview is non-empty.
    Sections keep their input order.
    """
    parts = [
        f"#####  *AI Generated* Meeting Summary for {topic}  #####\n",
        f"{meeting_date or ''}\n\n",
    ]

    if detail.summary_overview:
        parts.append(f"== SUMMARY OVERVIEW ==\n{detail.summary_overview}\n\n")

    parts.append("== FULL SUMMARY ==\n\n")
    for section in detail.summary_details:
        parts.append(f"-- {section.label.upper()} --\n")
        parts.append(f"{section.summary}\n\n")

    parts.append(f"=== DISCLAIMER ===\n{DISCLAIMER}\n")
    return "".join(parts)
