RESPONSE_FORMAT = """{
  "overallRating": number,  // 0-100
  "ats": {
    "score": number,  // 0-100, how well the resume passes applicant tracking systems
    "suggestions": [{"kind": "good" | "improve", "text": string}]
  },
  "toneAndStyle": {
    "score": number,
    "tips": [{"kind": "good" | "improve", "text": string, "explanation": string}]
  },
  "content": {"score": number, "tips": [{"kind": "good" | "improve", "text": string, "explanation": string}]},
  "structure": {"score": number, "tips": [{"kind": "good" | "improve", "text": string, "explanation": string}]},
  "skills": {"score": number, "tips": [{"kind": "good" | "improve", "text": string, "explanation": string}]}
}"""


def build_instructions(job_title: str, job_description: str, company_name: str = "") -> str:
    title = (job_title or "").strip() or "not provided"
    description = (job_description or "").strip() or "not provided"
    company = (company_name or "").strip()

    lines = [
        "You are an expert in ATS (Applicant Tracking System) and resume analysis.",
        "Analyze and rate the attached resume and suggest how to improve it.",
        "Be thorough and honest: low scores are fine when the resume is weak.",
        "Give 3-4 tips per category, mixing what is already good with what to improve.",
        "Use the job context below to judge relevance when it is provided.",
        "",
        f"Job title: {title}",
    ]
    if company:
        lines.append(f"Company: {company}")
    lines += [
        f"Job description: {description}",
        "",
        "Return the analysis as a JSON object in exactly this format:",
        RESPONSE_FORMAT,
        "Return only the JSON object, without backticks or any other text.",
    ]
    return "\n".join(lines)
