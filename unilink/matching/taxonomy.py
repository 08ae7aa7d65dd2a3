"""Skill taxonomy used to resolve synonyms when comparing skill lists.

Covers the technical and professional skills that show up most often on
alumni profiles and job postings. Extend as new postings come in.
"""

SKILL_TAXONOMY = [
    # Programming languages
    {"canonical_skill": "Python", "synonyms": ["python", "python3", "py"], "category": "Programming Language"},
    {
        "canonical_skill": "JavaScript",
        "synonyms": ["javascript", "js", "ecmascript", "es6", "node", "nodejs", "node.js"],
        "category": "Programming Language",
    },
    {"canonical_skill": "TypeScript", "synonyms": ["typescript", "ts"], "category": "Programming Language"},
    {"canonical_skill": "Java", "synonyms": ["java", "jdk", "spring boot"], "category": "Programming Language"},
    {"canonical_skill": "C++", "synonyms": ["c++", "cpp"], "category": "Programming Language"},
    {"canonical_skill": "Go", "synonyms": ["golang"], "category": "Programming Language"},

    # Data
    {"canonical_skill": "SQL", "synonyms": ["sql", "mysql", "postgresql", "postgres", "t-sql"], "category": "Database"},
    {"canonical_skill": "MongoDB", "synonyms": ["mongodb", "mongo"], "category": "Database"},
    {
        "canonical_skill": "Data Analysis",
        "synonyms": ["data analysis", "data analytics", "analytics", "pandas", "excel"],
        "category": "Data",
    },
    {
        "canonical_skill": "Machine Learning",
        "synonyms": ["machine learning", "ml", "scikit-learn", "sklearn"],
        "category": "AI",
    },
    {
        "canonical_skill": "Deep Learning",
        "synonyms": ["deep learning", "dl", "tensorflow", "pytorch"],
        "category": "AI",
    },
    {"canonical_skill": "NLP", "synonyms": ["nlp", "natural language processing"], "category": "AI"},

    # Web and infrastructure
    {"canonical_skill": "React", "synonyms": ["react", "reactjs", "react.js", "next.js", "nextjs"], "category": "Frontend"},
    {"canonical_skill": "Django", "synonyms": ["django"], "category": "Framework"},
    {"canonical_skill": "FastAPI", "synonyms": ["fastapi", "fast api"], "category": "Framework"},
    {"canonical_skill": "REST API", "synonyms": ["rest", "restful", "rest api", "api design"], "category": "Architecture"},
    {"canonical_skill": "Docker", "synonyms": ["docker", "containers", "containerization"], "category": "DevOps"},
    {"canonical_skill": "Kubernetes", "synonyms": ["kubernetes", "k8s"], "category": "DevOps"},
    {
        "canonical_skill": "Cloud",
        "synonyms": ["aws", "amazon web services", "azure", "gcp", "google cloud"],
        "category": "Cloud",
    },
    {"canonical_skill": "Git", "synonyms": ["git", "github", "gitlab", "version control"], "category": "Tools"},

    # Professional
    {
        "canonical_skill": "Project Management",
        "synonyms": ["project management", "pm", "pmp", "scrum", "agile", "kanban"],
        "category": "Management",
    },
    {
        "canonical_skill": "Product Management",
        "synonyms": ["product management", "product owner", "roadmapping"],
        "category": "Management",
    },
    {
        "canonical_skill": "Marketing",
        "synonyms": ["marketing", "digital marketing", "seo", "content marketing", "social media"],
        "category": "Business",
    },
    {
        "canonical_skill": "Finance",
        "synonyms": ["finance", "financial analysis", "accounting", "financial modeling"],
        "category": "Business",
    },
    {"canonical_skill": "UI/UX Design", "synonyms": ["ui", "ux", "ui/ux", "figma", "user research"], "category": "Design"},
    {"canonical_skill": "Leadership", "synonyms": ["leadership", "team lead", "people management"], "category": "Soft Skill"},
    {"canonical_skill": "Communication", "synonyms": ["communication", "public speaking", "presentation"], "category": "Soft Skill"},
]
