"""Instruction templates sent to task backends.

The wording is not a contract; callers depend only on the JSON shape the
templates ask for, which the domain models validate.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

STRUCTURING_PROMPT = """You are an expert resume parser. Extract structured data from the resume text below.

## RESUME TEXT
{resume_text}

## YOUR TASK
Return one JSON object with this structure. Extract all information.

{{
  "contactInfo": {{"name": "", "email": "", "phone": "", "location": "", "linkedin": "", "github": "", "website": ""}},
  "experience": [{{"id": "exp-1", "company": "", "position": "", "location": "", "startDate": "Month Year",
                   "endDate": "Month Year or Present", "bullets": [""]}}],
  "education": [{{"id": "edu-1", "institution": "", "degree": "", "field": "", "location": "",
                  "startDate": "Year", "endDate": "Year or Expected Year", "gpa": "", "highlights": [""]}}],
  "skills": {{"format": "categorized", "categories": [{{"name": "Languages", "skills": [""]}}]}},
  "projects": [{{"id": "proj-1", "name": "", "description": "", "technologies": [""], "url": "",
                 "startDate": "Month Year", "endDate": "Month Year", "bullets": [""]}}],
  "sections": [{{"title": "Experience", "content": "Raw text content", "order": 0}}]
}}

## RULES
1. Extract every experience, education and project entry.
2. Put each bullet point in its own array item.
3. Group skills into named categories (Languages, Frameworks, Tools, ...).
4. Omit fields that are not present; do not emit null or empty strings.
5. Give each entry an id (exp-1, exp-2, edu-1, proj-1, ...).
6. Use dates like "Jan 2024".
7. Return only JSON, without markdown code fences.
"""

MERGE_PROMPT = """You compare and merge project data.

## EXISTING PROJECTS (already in the user's profile)
{existing_projects}

## NEW PROJECTS (extracted from a resume)
{new_projects}

## YOUR TASK
For each NEW project decide one action:
1. add: no existing project matches it.
2. update: it matches an existing project and carries new or better information.
3. skip: it matches an existing project and adds nothing.

Projects match on the same or very similar name, the same URL, or the same purpose.
Only update when the new data is more complete. When updating, union the skills and
bullets and keep the longer description. Give a short reason for each decision.
"""

JOB_PARSE_PROMPT = """Extract the job posting below into JSON.

## JOB POSTING
{job_text}

Return the title, company, location, employment type, salary range, a short description,
responsibilities, requirements, nice-to-haves, technical skills, experience level and
keywords useful for tailoring a resume.
"""

JOB_FETCH_PROMPT = """Open the job posting at {url} using your search tools and extract it into JSON.

Return the title, company, location, employment type, salary range, a short description,
responsibilities, requirements, nice-to-haves, technical skills, experience level and
keywords useful for tailoring a resume. Use only information from the posting itself.
"""

TAILOR_PROMPT = """Tailor this resume for ATS optimization. Reorder and rephrase to match job keywords.

## RULES
- Never fabricate information. Only use the candidate data below.
- Write bullets as action verb + what was done + quantified result.
- Experience: 3-4 bullets each. Projects: 2-3 bullets each.
- Match keywords from the job posting in your bullets.
- experienceJson, educationJson and projectsJson are JSON-encoded arrays using the
  same entry shape as the candidate data.

## JOB POSTING
{title} at {company}
{full_text}
{keywords}

## CANDIDATE DATA
Contact: {contact}
Experience: {experience}
Education: {education}
Projects: {projects}
Skills: {skills}
"""

MERGE_DECISIONS_FORMAT: Dict[str, Any] = {
    "type": "object",
    "title": "MergeDecisions",
    "properties": {
        "decisions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": ["add", "update", "skip"]},
                    "newProjectName": {"type": "string"},
                    "existingProjectId": {"type": "string"},
                    "reason": {"type": "string"},
                    "mergedData": {
                        "type": "object",
                        "properties": {
                            "description": {"type": "string"},
                            "bullets": {"type": "array", "items": {"type": "string"}},
                            "skills": {"type": "array", "items": {"type": "string"}},
                            "url": {"type": "string"},
                        },
                    },
                },
                "required": ["action", "newProjectName", "reason"],
            },
        },
    },
    "required": ["decisions"],
}

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

JOB_ANSWER_FORMAT: Dict[str, Any] = {
    "type": "object",
    "title": "ParsedJob",
    "properties": {
        "title": {"type": "string"},
        "company": {"type": "string"},
        "location": {"type": "string"},
        "employmentType": {"type": "string"},
        "salaryRange": {"type": "string"},
        "description": {"type": "string"},
        "responsibilities": _STRING_LIST,
        "requirements": _STRING_LIST,
        "niceToHaves": _STRING_LIST,
        "technicalSkills": _STRING_LIST,
        "experienceLevel": {"type": "string"},
        "keywords": _STRING_LIST,
    },
    "required": ["title", "company"],
}

# Nested entries travel as JSON strings; several backends reject deep object schemas.
TAILORED_RESUME_FORMAT: Dict[str, Any] = {
    "type": "object",
    "title": "TailoredResume",
    "properties": {
        "name": {"type": "string"},
        "email": {"type": "string"},
        "phone": {"type": "string"},
        "location": {"type": "string"},
        "linkedin": {"type": "string"},
        "github": {"type": "string"},
        "website": {"type": "string"},
        "professionalSummary": {"type": "string"},
        "experienceJson": {"type": "string"},
        "educationJson": {"type": "string"},
        "projectsJson": {"type": "string"},
        "technicalSkills": _STRING_LIST,
        "frameworksAndTools": _STRING_LIST,
        "keyImprovements": _STRING_LIST,
        "keywordsAdded": _STRING_LIST,
        "matchScore": {"type": "integer"},
    },
    "required": ["name", "email", "professionalSummary", "experienceJson", "matchScore"],
}


def structuring_instructions(resume_text: str) -> str:
    return STRUCTURING_PROMPT.format(resume_text=resume_text)


def merge_instructions(existing_projects: List[Dict[str, Any]], new_projects: List[Dict[str, Any]]) -> str:
    return MERGE_PROMPT.format(
        existing_projects=json.dumps(existing_projects, indent=2, default=str),
        new_projects=json.dumps(new_projects, indent=2, default=str),
    )


def job_parse_instructions(job_text: str) -> str:
    return JOB_PARSE_PROMPT.format(job_text=job_text)


def job_fetch_instructions(url: str) -> str:
    return JOB_FETCH_PROMPT.format(url=url)


def tailor_instructions(job: Dict[str, Any], candidate: Dict[str, Any]) -> str:
    keywords = job.get("keywords") or []

    def _dump(key: str) -> str:
        return json.dumps(candidate.get(key) or [], default=str)

    return TAILOR_PROMPT.format(
        title=job.get("title", ""),
        company=job.get("company", ""),
        full_text=job.get("fullText", ""),
        keywords=f"Keywords: {', '.join(keywords)}" if keywords else "",
        contact=json.dumps(candidate.get("contactInfo") or {}, default=str),
        experience=_dump("experience"),
        education=_dump("education"),
        projects=_dump("projects"),
        skills=json.dumps(candidate.get("skills") or {}, default=str),
    )
