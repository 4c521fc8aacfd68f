# case_reasoning/config/constants.py

# Soundex digit classes: labials, sibilants/gutturals, dentals, L, nasals, R
SOUNDEX_CODES = {
    "B": "1", "F": "1", "P": "1", "V": "1",
    "C": "2", "G": "2", "J": "2", "K": "2", "Q": "2", "S": "2", "X": "2", "Z": "2",
    "D": "3", "T": "3",
    "L": "4",
    "M": "5", "N": "5",
    "R": "6",
}

# Leading titles stripped before alias lookup
HONORIFIC_PATTERN = r"^(Mr\.?|Mrs\.?|Ms\.?|Dr\.?|Officer|Detective|Sgt\.?|Lt\.?|Capt\.?)\s+"

# Checked in order, first hit wins
ROLE_PATTERNS = [
    ("victim", r"victim|deceased|murdered|killed"),
    ("suspect", r"suspect|accused|arrested|charged"),
    ("witness", r"witness|saw|observed|stated|testified"),
    ("family", r"family|mother|father|brother|sister|wife|husband|son|daughter"),
    ("investigator", r"officer|detective|investigator|sergeant"),
]

NAME_PATTERNS = [
    r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,3})\b",
    r"\bMr\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b",
    r"\bMs\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b",
    r"\bMrs\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b",
    r"\bDr\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b",
    r"\bOfficer\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b",
    r"\bDetective\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b",
]

NON_NAME_WORDS = {
    "the", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december", "police", "department",
    "street", "avenue", "road", "court", "hospital", "station", "office",
    "evidence", "report", "case", "file", "document", "witness", "victim",
    "suspect", "interview", "statement", "unknown", "male", "female",
}

MENTION_CONTEXT_WINDOW = 100
MENTION_SENTENCE_LIMIT = 500

# --- Contradiction detection vocabulary ---

# (affirming form, negating form); a fixed list, phrasing outside it is not caught
NEGATION_PAIRS = [
    ("did", "didn't"),
    ("did", "did not"),
    ("was", "wasn't"),
    ("was", "was not"),
    ("saw", "didn't see"),
    ("knew", "didn't know"),
    ("went", "didn't go"),
    ("yes", "no"),
    ("never", "always"),
]

WITNESS_OPPOSITION_PAIRS = [
    ("did", "did not"),
    ("was", "was not"),
    ("saw", "did not see"),
]

# (evidence keyword, testimony keyword, analysis)
EVIDENCE_PRESENCE_RULES = [
    ("found", "never", "Physical evidence indicates presence where testimony claims absence"),
    ("present", "absent", "Physical evidence indicates presence where testimony claims absence"),
    ("detected", "no", "Physical evidence indicates presence where testimony claims absence"),
]
FORENSIC_TRACE_KEYWORDS = ["dna", "fingerprint"]
DENIAL_KEYWORDS = ["never"]
FORENSIC_DENIAL_ANALYSIS = "Forensic evidence places subject at scene despite denial"

EVIDENCE_FACT_TYPES = {"physical_evidence", "forensic_finding"}
TIMELINE_FACT_TYPES = {"location_claim", "alibi"}
WITNESS_FACT_TYPES = {"observation", "behavioral_observation", "physical_description", "vehicle_sighting"}
FIRST_PERSON_SUBJECTS = {"i", "me", "myself"}

# --- Suspicion scoring vocabulary ---

CLOSE_RELATIONSHIP_KEYWORDS = ["family", "spouse"]
ACQUAINTANCE_KEYWORDS = ["friend", "colleague"]
PHYSICAL_CRIME_KEYWORDS = ["physical", "assault"]
PHYSICAL_CAPABILITY_KEYWORDS = ["strong", "physical", "capable"]
WEAPON_KEYWORDS = ["gun", "knife", "weapon"]
FINANCIAL_KEYWORDS = ["insurance", "inherit", "money", "will", "beneficiary"]
CONFLICT_KEYWORDS = ["fight", "argument", "angry", "threatened", "jealous", "divorce", "affair"]
CONFLICT_FACT_TYPES = {"prior_incident", "state_of_mind"}
VIOLENCE_KEYWORDS = ["threatened", "violent"]
WITNESS_KNOWLEDGE_KEYWORDS = ["knew about", "witnessed", "saw", "secret"]
CONNECTING_EVIDENCE_KEYWORDS = ["fingerprint", "hair", "fiber", "blood"]
IDENTIFICATION_KEYWORDS = ["identified", "recognized", "saw him", "saw her"]

COMPONENT_MAX = 25
TOTAL_MAX = 100
CRITICAL_FACTOR_WEIGHT = 8
KEY_FINDING_MIN_WEIGHT = 5
MAX_KEY_FINDINGS = 10

DNA_MATCH_WEIGHT = 50
DNA_EXCLUSION_WEIGHT = -30
CONNECTING_EVIDENCE_CAP = 20
WITNESS_IDENTIFICATION_CAP = 15

# data quality tier -> (minimum data points, base confidence)
DATA_QUALITY_TIERS = [
    ("comprehensive", 50, 0.9),
    ("adequate", 20, 0.7),
    ("partial", 5, 0.5),
    ("insufficient", 0, 0.3),
]
