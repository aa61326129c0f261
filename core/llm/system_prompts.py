"""
Versioned prompt templates.

Placeholders like {cv_text} are substituted with PromptRegistry.render.
Templates may contain literal JSON braces, so str.format is never used.
"""

CV_TO_PROFILE_PROMPT = """
You are a resume-to-structured-data extraction engine.

Extract the candidate profile from the resume below and answer with a single JSON object:
{"name": str|null, "email": str|null, "phone": str|null, "summary": str|null,
 "experience": [{"company": str, "role": str, "start": str|null, "end": str|null}],
 "education": [{"institution": str, "degree": str|null}],
 "skills": [{"skill": str, "evidence": str}]}

Use only information explicitly present in the resume. Use null or [] when missing.

Resume:
{cv_text}
"""

CV_TO_PROFILE_RAG_PROMPT = """
You are a resume-to-structured-data extraction engine working from retrieved resume chunks.

Answer with a single JSON object:
{"name": str|null, "email": str|null, "phone": str|null, "summary": str|null,
 "experience": [{"company": str, "role": str, "start": str|null, "end": str|null, "chunkIndex": int}],
 "education": [{"institution": str, "degree": str|null, "chunkIndex": int}],
 "skills": [{"skill": str, "evidence": str, "chunkIndex": int}]}

Every skill, experience and education entry MUST cite the chunk it comes from in "chunkIndex".
Use only information present in the chunks or the resume text.

Question / focus:
{query}

Relevant chunks:
{relevant_chunks}

Full resume text:
{cv_text}
"""

PROFILE_TO_EVALUATION_RAG_PROMPT = """
You evaluate a candidate against a job blueprint using retrieved resume chunks.

Answer with a single JSON object:
{"decision": "yes"|"maybe"|"no", "confidence": float, "summary": str,
 "criteria_matches": [{"criterion": str, "met": bool,
   "evidence": [{"quote": str, "chunkIndex": int}]}]}

Every evidence item MUST cite the chunk it quotes in "chunkIndex".

Job blueprint / focus:
{query}

Relevant chunks:
{relevant_chunks}
"""

PROMPT_TEMPLATES = {
    "v1.0": {
        "cv_to_profile": CV_TO_PROFILE_PROMPT,
        "cv_to_profile_rag": CV_TO_PROFILE_RAG_PROMPT,
        "profile_to_evaluation_rag": PROFILE_TO_EVALUATION_RAG_PROMPT,
    },
}

DEFAULT_SYSTEM_PROMPT = "You answer with JSON only. Do not wrap the JSON in markdown."
