"""Prompt templates for the match scoring engine.

Both prompts ask for a bare JSON object; the engine strips stray code fences
before parsing.
"""

SYSTEM_PROMPT = (
    "You are an experienced technical recruiter. You compare resumes with job "
    "descriptions honestly and answer with a single JSON object and nothing else."
)

ASSESS_PROMPT = """Analyze the following resume and job description to extract skills and calculate match scores.

RESUME:
{resume_text}

JOB DESCRIPTION:
{job_description}

Respond with JSON of this shape:
{{
  "matchingSkills": ["skill1", "skill2"],
  "missingSkills": ["skill1", "skill2"],
  "technicalScore": 0-100,
  "experienceScore": 0-100,
  "domainScore": 0-100,
  "overallScore": 0-100
}}

Scores:
- technicalScore: how well the candidate's technical skills match the requirements
- experienceScore: how the candidate's experience level matches what is needed
- domainScore: how relevant the candidate's industry/domain experience is
- overallScore: weighted average of the above

Only return the JSON, no additional text."""

DRAFT_PROMPT = """Write a personalized recruiting outreach message.

DETAILS:
- Candidate: {candidate_name}
- Job Title: {job_title}
- Company: {company_name}
- Matching Skills: {matching_skills}
- Tone: {tone}
- Match Score: {match_score}%

Respond with JSON of this shape:
{{
  "message": "personalized outreach message",
  "improvementSuggestions": ["suggestion1", "suggestion2"]
}}

The message should be {tone} in tone, mention specific matching skills, include a clear
call to action and run roughly 100-150 words. Give 2-3 actionable improvement suggestions
for the candidate.

Only return the JSON, no additional text."""

TONE_HINTS = {
    "professional": "polished and respectful",
    "casual": "friendly and relaxed",
    "enthusiastic": "energetic and upbeat",
    "direct": "brief and to the point",
}

FALLBACK_MESSAGE = (
    "Hi {candidate_name},\n\n"
    "I came across your profile and was impressed by your experience with {skills}. "
    "Your background seems like a great fit for our {job_title} role at {company_name}.\n\n"
    "I'd love to schedule a brief call to discuss this opportunity further. "
    "Are you available for a 15-minute conversation this week?\n\n"
    "Best regards,\n[Your Name]"
)

FALLBACK_SUGGESTIONS = [
    "Consider gaining more experience in emerging technologies",
    "Strengthen your portfolio with recent projects",
    "Develop leadership and communication skills",
]
