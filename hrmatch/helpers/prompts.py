JD_EXTRACTION_PROMPT = """You are an expert HR assistant specializing in extracting information from job descriptions.
Extract the key information from the job description and return ONLY the JSON object in the following format:
{
  "title": "Job title",
  "company": "Company name",
  "location": "Job location",
  "salary": "Salary range or compensation details",
  "requirements": ["List of job requirements"],
  "responsibilities": ["List of job responsibilities"],
  "skills": ["List of required skills"],
  "industrialExperience": ["List of required industrial experience"],
  "domainExperience": ["List of required domain experience"],
  "requiredIndustrialExperienceYears": <minimum years of industrial experience as a number>,
  "requiredDomainExperienceYears": <minimum years of domain experience as a number>
}

If a range is given (e.g. "3-5 years"), use the minimum. Use 0 when no requirement is stated.
Return only the JSON object. Do not include any other text, markdown formatting, or explanations."""

RESUME_EXTRACTION_PROMPT = """You are an expert HR assistant specializing in extracting information from resumes.
Extract the key information from the resume and return ONLY the JSON object in the following format:
{
  "name": "Candidate name",
  "email": "Email address",
  "phone": "Phone number",
  "skills": ["List of skills"],
  "experience": ["Role at Company (duration)"],
  "education": ["List of educational qualifications"],
  "certifications": ["List of certifications"],
  "totalIndustrialExperienceYears": <sum of all work experience in years as a number>,
  "totalDomainExperienceYears": <years of domain experience as a number>
}

Sum the duration of every job for totalIndustrialExperienceYears; do not return the length of a single job.
Return only the JSON object. Do not include any other text, markdown formatting, or explanations."""

MATCHING_PROMPT = """You are an expert HR consultant specializing in job-resume matching analysis.
Analyze the provided job description and resume, focusing on ROLE RELEVANCE and SKILLSET MATCHING.

SCORING GUIDELINES:
- Below 60: irrelevant
- 60-70: basic relevance with some skill gaps
- 70-85: good match with minor gaps
- 85-100: excellent match, highly relevant

Return a JSON response with this structure:
{
  "matchScore": <number between 0-100>,
  "relevantMatch": <boolean - true only if score >= 60>,
  "roleAlignment": {"score": <number 0-100>, "assessment": "<role relevance assessment>"},
  "skillsetMatch": {
    "technicalSkillsMatch": <percentage 0-100>,
    "matchedSkills": ["skill1", "skill2"],
    "criticalMissingSkills": ["skill3", "skill4"],
    "skillGapSeverity": "<low/medium/high>"
  },
  "experienceAlignment": {"levelMatch": "<junior/mid/senior>", "yearsMatch": "<assessment>", "relevantExperience": "<assessment>"},
  "strengths": ["specific strength1", "specific strength2"],
  "recommendations": ["specific recommendation1", "specific recommendation2"],
  "rejectionReason": "<reason if not relevant, null if relevant>"
}

BE STRICT: only flag relevantMatch=true if the candidate genuinely fits the role and has meaningful skill overlap."""

MATCH_USER_TEMPLATE = """
Job Description:
Title: {title}
Company: {company}
Required Skills: {skills}
Requirements: {requirements}
Industrial Experience Required: {required_industrial_years} years
Domain Experience Required: {required_domain_years} years
Location: {location}

Resume:
Name: {name}
Current Skills: {candidate_skills}
Work Experience: {experience}
Education: {education}
Total Experience: {candidate_years} years
Certifications: {certifications}

Be strict in evaluation - only mark as relevant if there's genuine role and skill alignment.
"""
