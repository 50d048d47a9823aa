"""Lexicon tables for signal extraction and output guards.

All matching is done at word boundaries by text_utils.contains_word_or_phrase,
so every inflection that should count has to be listed.
"""

# Depth triggers: existential layer, most specific first
EXISTENTIAL_I3 = (
    "why am i alive", "why do i exist", "meaning of my life", "meaning of life",
    "what am i living for", "reason to live", "purpose of my existence",
    "who am i really", "why was i born",
)
EXISTENTIAL_I2 = (
    "my purpose", "life purpose", "what i really want", "what i truly want",
    "my calling", "the point of it all", "who i want to be", "how i want to live",
    "my values", "what matters to me",
)
EXISTENTIAL_I1 = (
    "meaning", "purpose", "direction in life", "my path", "wish", "deep down",
    "true self", "my vision",
)

RELATIONAL = (
    "my boss", "my manager", "my partner", "my wife", "my husband", "my girlfriend",
    "my boyfriend", "my friend", "my friends", "my mother", "my father", "my mom",
    "my dad", "my family", "my coworker", "my colleague", "my team", "relationship",
    "they said", "she said", "he said", "argument", "argued", "fight with",
)
ACTION = (
    "plan", "project", "deadline", "task", "tasks", "schedule", "start", "finish",
    "launch", "ship", "deliver", "build", "apply", "submit", "decide", "next step",
    "steps", "to do", "todo",
)
SELF_CARE = (
    "tired", "exhausted", "sleep", "rest", "burned out", "burnt out", "worn out",
    "body", "headache", "overwhelmed", "drained", "can't sleep",
)

# Affect structural signals
INCIDENT = (
    "incident", "accident", "mistake", "error", "failed", "failure", "crash",
    "crashed", "broke", "broken", "went wrong", "screwed up", "messed up", "outage",
)
FREEZE = (
    "froze", "frozen", "freeze", "freezing", "paralyzed", "can't move", "numb",
    "shut down", "locked up",
)
BLOCKED = (
    "blocked", "stuck", "can't proceed", "cannot proceed", "no way forward",
    "dead end", "can't move forward", "hit a wall",
)
URGENCY = (
    "urgent", "urgently", "asap", "right now", "immediately", "running out of time",
    "no time", "by tomorrow", "due today", "hurry",
)
EMPTINESS = (
    "empty", "emptiness", "hollow", "pointless", "meaningless", "feel nothing",
    "numbness", "void",
)

# Keyword affect scan (needs two hits to answer)
AFFECT_KEYWORDS = {
    "Q1": (
        "endure", "enduring", "putting up with", "hold it in", "holding it in",
        "rules", "responsibility", "responsible", "can't make mistakes",
        "must not fail", "can't fail", "evaluated", "pressure", "should",
    ),
    "Q2": (
        "angry", "anger", "furious", "irritated", "annoyed", "pissed", "rage",
        "unfair", "can't forgive", "frustrated", "want to grow", "want to change",
        "prove them wrong",
    ),
    "Q3": (
        "anxious", "anxiety", "worried", "worry", "worrying", "nervous", "uneasy",
        "restless", "unsure", "uncertain", "what if", "can't decide", "torn",
        "insecure", "future",
    ),
    "Q4": (
        "scared", "afraid", "fear", "terrified", "frightened", "trauma", "flashback",
        "want to run away", "want to escape", "can't trust", "don't trust",
    ),
    "Q5": (
        "empty", "hollow", "burned out", "burnt out", "no motivation", "feel nothing",
        "passion", "excited", "thrilled", "really want to do", "fire in me",
    ),
}

# Phase vocabulary
INWARD = (
    "i feel", "i felt", "myself", "my heart", "inside me", "my feelings", "my mind",
    "i think", "i wonder", "my own", "i'm feeling", "i am feeling",
)
OUTWARD = (
    "they", "he", "she", "others", "people", "my boss", "my team", "the company",
    "the world", "society", "everyone", "them",
)

# Topic buckets (first match wins, in this order)
TOPICS = (
    ("work", ("work", "job", "boss", "manager", "office", "career", "coworker", "colleague", "project", "deadline")),
    ("relationship", ("partner", "girlfriend", "boyfriend", "wife", "husband", "dating", "relationship", "breakup", "love")),
    ("family", ("family", "mother", "father", "mom", "dad", "sister", "brother", "kids", "children", "parents")),
    ("health", ("health", "sleep", "tired", "sick", "doctor", "body", "pain", "exhausted")),
    ("money", ("money", "rent", "debt", "salary", "bills", "savings", "budget")),
    ("future", ("future", "someday", "plans", "dream", "next year", "goals")),
    ("self", ("myself", "who i am", "self", "confidence", "worth", "identity")),
)

# Self-acceptance language
SELF_ATTACK = (
    "i hate myself", "i'm worthless", "i am worthless", "i'm useless", "i am useless",
    "i'm a failure", "i am a failure", "i'm stupid", "i am stupid", "my fault",
    "i'm not good enough", "i am not good enough", "i'm pathetic", "i always mess up",
    "i can't do anything right", "i'm the problem",
)
SELF_ACCEPTANCE = (
    "it's okay", "it is okay", "i'm okay", "i am okay", "i accept", "accept myself",
    "proud of myself", "i did my best", "good enough", "i forgive myself",
    "i'm allowed", "i deserve", "that's fine", "i can live with",
)

DISTRESS = (
    "can't take it", "can't breathe", "breaking down", "falling apart", "panic",
    "panicking", "desperate", "unbearable", "i can't anymore", "crying", "hopeless",
)
ANXIETY = (
    "anxious", "anxiety", "worried", "worry", "nervous", "scared", "afraid", "uneasy",
)
TIME_PRESSURE = (
    "no time", "deadline", "hurry", "rushed", "running out of time", "asap",
    "right now", "by tomorrow", "due today",
)
SLOW_DOWN = (
    "slowly", "take my time", "no rush", "step by step", "one thing at a time",
    "calm", "quietly",
)

STRESS = (
    "stressed", "stress", "overwhelmed", "exhausted", "can't cope", "too much",
    "breaking down", "falling apart", "miserable", "depressed", "awful", "terrible",
    "hopeless", "burned out", "burnt out",
)

# Rotation gate signals
STAY_REQUEST = (
    "stay here", "let me stay", "stay with this", "stay with it", "not yet",
    "i'm not ready", "i am not ready", "keep it here",
)
BOUNDARY_REQUEST = (
    "leave me alone", "stop asking", "don't ask me", "stop prying", "don't pry",
    "don't push me", "stop pushing me", "give me space", "i need space", "back off",
    "don't dig", "i don't want to talk about it",
)
ACTION_WEAK = (
    "maybe i should", "i could try", "what if i", "thinking about doing",
    "might start", "i might", "could i", "perhaps i should",
)
ACTION_EXPLICIT = (
    "let's do it", "let's do this", "i'm ready", "i am ready", "let's start",
    "go ahead", "i'll do it", "i will do it", "let's go", "tell me what to do",
)
DELEGATION = (
    "you decide", "you choose", "decide for me", "choose for me", "handle it for me",
    "do it for me", "you pick", "up to you",
)

INTROSPECTIVE = (
    "why do i", "why am i", "i wonder", "deep down", "what i really", "who i am",
    "my purpose", "meaning", "i realize", "i realized",
)

RISK_FLAGS = {
    "suicide_risk": ("kill myself", "end my life", "suicide", "don't want to live", "want to die"),
    "self_harm": ("hurt myself", "cut myself", "self harm", "self-harm"),
    "panic": ("panic attack", "can't breathe"),
}
SEVERE_RISK_FLAGS = ("suicide_risk", "self_harm", "panic", "severe_depression")

GREETINGS = (
    "hi", "hello", "hey", "good morning", "good evening", "good night", "yo",
    "thanks", "thank you", "bye",
)
MICRO_WORDS = {
    "ok", "okay", "yes", "no", "yeah", "yep", "nope", "hmm", "hm", "mm", "uh", "oh",
    "sure", "right", "true", "lol", "k", "...", "?", "!",
}

# Output-side lexicons
INTERROGATIVES = (
    "what", "how", "why", "which", "when", "where", "who", "could you", "would you",
    "do you", "did you", "are you", "is it", "have you", "can you", "shall we",
)
FORWARD_MARKERS = (
    "next", "let's", "try", "start", "tomorrow", "tonight", "first step",
    "one step", "begin", "today",
)
DIRECTIVE_PATTERNS = (
    "you should", "you need to", "you must", "you have to", "the answer is",
    "here's what to do", "here is what to do", "the solution is", "do this",
    "make sure you", "i recommend that you",
)
URGENCY_PATTERNS = (
    "right now", "immediately", "as soon as possible", "asap", "hurry",
    "don't wait", "before it's too late", "without delay",
)
CHEER_PATTERNS = (
    "you've got this", "you got this", "you can do it", "stay positive",
    "keep going", "i believe in you", "great job", "you're amazing", "never give up",
)
HEDGE_PATTERNS = (
    "maybe", "perhaps", "it might be", "it could be", "possibly", "sort of",
    "kind of", "i guess", "it seems like",
)
GENERIC_PATTERNS = (
    "it's important to", "it is important to", "everyone is different",
    "at the end of the day", "remember that", "it's okay to feel", "self-care is",
    "take care of yourself", "everything happens for a reason", "be kind to yourself",
)

# Candidate-list salvage
LIST_FILLER_PREFIXES = (
    "maybe", "perhaps", "i think", "you could", "you might", "you can",
    "it might help to", "it may help to", "one option is to", "another option is to",
    "how about", "consider", "try to", "i suggest", "i'd suggest",
)
LIST_HEDGE_SUFFIXES = (
    "might help", "could help", "could work", "might work", "if you like",
    "if you want", "or so", "i guess", "perhaps", "maybe", "for example",
)
LIST_SITUATIONAL_PREFIX = r"^(?:when|if|whenever|once|while|after|before)\b[^,]{0,60},\s*"
ACTION_VERBS = (
    "try", "write", "take", "ask", "list", "call", "walk", "note", "pick", "set",
    "start", "block", "send", "read", "plan", "sleep", "rest", "talk", "check",
    "share", "review", "draft", "schedule", "name", "book", "clear", "drink",
    "open", "close", "stretch", "breathe", "text", "tell", "put", "make", "move",
    "cancel", "skip", "sit", "go", "spend", "keep", "leave",
)
SPECIFIC_TIME_WORDS = (
    "minutes", "minute", "today", "tonight", "tomorrow", "morning", "evening",
    "after lunch", "before bed", "this week", "hour", "hours", "monday", "friday",
)

COMFORT_PHRASES = {
    "Q3": "Let's slow down for a moment.",
    "Q4": "You're safe to take this at your own pace.",
}
