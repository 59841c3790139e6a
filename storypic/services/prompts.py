"""
Prompt text for both stages. Kept together so wording can be tuned without touching backends.
"""

STORY_SYSTEM_HINT = "You are a creative story writer."

STORY_PROMPT = (
    "Generate a short story based on the content of the following image. "
    "Write a captivating story that brings the image to life. "
    "Return only the story text."
)

IMPROVE_SYSTEM_HINT = (
    "You are an experienced fiction editor. You polish short stories without changing "
    "their plot, characters, or setting."
)

def improve_prompt(story: str) -> str:
    return (
        "Improve the following short story. Tighten the prose, fix grammar and spelling, "
        "vary sentence rhythm, and make the imagery more vivid. Keep roughly the same length. "
        "Return only the improved story, no title and no commentary.\n\n"
        f"STORY:\n{story.strip()}"
    )
