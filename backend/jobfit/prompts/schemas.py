"""Response schemas passed to the model as ``responseSchema``.

Written in the service's OpenAPI subset (upper-case type names).
"""

_STRING = {"type": "STRING"}
_STRING_LIST = {"type": "ARRAY", "items": _STRING}

DISTILLED_JOB_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "companyName": _STRING,
        "roleTitle": _STRING,
        "location": {"type": "STRING", "nullable": True},
        "applicationDeadline": {"type": "STRING", "nullable": True},
        "salaryRange": {"type": "STRING", "nullable": True},
        "source": {"type": "STRING", "nullable": True},
        "referenceCode": {"type": "STRING", "nullable": True},
        "keySkills": _STRING_LIST,
        "requiredSkills": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": _STRING,
                    "level": {"type": "STRING", "enum": ["learning", "comfortable", "expert"]},
                },
                "required": ["name", "level"],
            },
        },
        "coreResponsibilities": _STRING_LIST,
        "category": {"type": "STRING", "enum": ["technical", "managerial", "general"]},
        "isAiBanned": {"type": "BOOLEAN"},
        "aiBanReason": {"type": "STRING", "nullable": True},
    },
    "required": ["companyName", "roleTitle", "keySkills", "coreResponsibilities", "category"],
}

EXTRACTION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "distilledJob": DISTILLED_JOB_SCHEMA,
        "cleanedDescription": _STRING,
    },
    "required": ["distilledJob", "cleanedDescription"],
}

FIT_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "compatibilityScore": {"type": "INTEGER"},
        "bestResumeProfileId": _STRING,
        "reasoning": _STRING,
        "strengths": _STRING_LIST,
        "weaknesses": _STRING_LIST,
        "resumeTailoringInstructions": _STRING_LIST,
        "coverLetterTailoringInstructions": _STRING_LIST,
        "recommendedBlockIds": _STRING_LIST,
    },
    "required": ["compatibilityScore", "bestResumeProfileId"],
}

CRITIQUE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "INTEGER"},
        "decision": {"type": "STRING", "enum": ["interview", "reject", "maybe"]},
        "strengths": _STRING_LIST,
        "feedback": _STRING_LIST,
        "hallucinationAlerts": _STRING_LIST,
    },
    "required": ["score", "decision", "feedback"],
}

TAILORED_SUMMARY_SCHEMA = {
    "type": "OBJECT",
    "properties": {"summary": _STRING},
    "required": ["summary"],
}

TAILORED_BULLETS_SCHEMA = _STRING_LIST
