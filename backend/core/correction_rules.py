"""
OCR Correction Rule Table.

An ordered, data-only table of substitutions that repair the misreadings OCR
engines typically produce on rendered subtitle bitmaps. The correction engine
walks this table top to bottom for every subtitle text line.

Rule kinds:
- ``word``: whole-word literal; does not match inside a longer word
- ``literal``: plain substring replacement
- ``regex``: regular expression with a replacement template

Categories run in this order: quote and spacing normalization, character
confusion, split words, merged words, contractions, punctuation and spacing,
music and hearing-impaired markers. Table order matters: a rule only sees the
output of the rules above it within the same pass, so anything that can turn
text into a match for a word rule is normalized first.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Pattern, Tuple

WORD = "word"
LITERAL = "literal"
REGEX = "regex"


@dataclass(frozen=True)
class CorrectionRule:
    """One pattern/replacement pair of the rule table."""

    pattern: str
    replacement: str
    kind: str = WORD
    category: str = "general"
    description: str = ""
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.kind == WORD:
            regex = r"(?<!\w)" + re.escape(self.pattern) + r"(?!\w)"
        elif self.kind == LITERAL:
            regex = re.escape(self.pattern)
        elif self.kind == REGEX:
            regex = self.pattern
        else:
            raise ValueError(f"Unknown rule kind: {self.kind}")
        object.__setattr__(self, "compiled", re.compile(regex))

    def apply(self, text: str) -> Tuple[str, int]:
        """Apply the rule, returning the new text and the number of substitutions."""
        if self.kind == REGEX:
            return self.compiled.subn(self.replacement, text)
        # Literal replacement text must not be read as a template
        return self.compiled.subn(lambda _match: self.replacement, text)


def _words(pairs: Iterable[Tuple[str, str]], category: str, capitalize: bool = False) -> List[CorrectionRule]:
    rules = []
    for wrong, right in pairs:
        rules.append(CorrectionRule(wrong, right, WORD, category))
        if capitalize and wrong[:1].islower():
            rules.append(
                CorrectionRule(wrong[0].upper() + wrong[1:], right[0].upper() + right[1:], WORD, category)
            )
    return rules


# Lowercase "l" read where a capital "I" was rendered
_L_FOR_I = [
    ("l'm", "I'm"),
    ("l'll", "I'll"),
    ("l've", "I've"),
    ("l'd", "I'd"),
    ("lt", "It"),
    ("lt's", "It's"),
    ("lts", "Its"),
    ("ls", "Is"),
    ("lsn't", "Isn't"),
    ("ln", "In"),
    ("lf", "If"),
    ("l'II", "I'll"),
]

# Capital "I" read where a lowercase "l" was rendered
_I_FOR_L = [
    ("Iike", "like"),
    ("Iikely", "likely"),
    ("Iiked", "liked"),
    ("Iittle", "little"),
    ("Iook", "look"),
    ("Iooks", "looks"),
    ("Iooked", "looked"),
    ("Iooking", "looking"),
    ("Iet", "let"),
    ("Iet's", "let's"),
    ("Iife", "life"),
    ("Iove", "love"),
    ("Ioved", "loved"),
    ("Iong", "long"),
    ("Iast", "last"),
    ("Ieft", "left"),
    ("Ieave", "leave"),
    ("Ieaving", "leaving"),
    ("Iater", "later"),
    ("Iady", "lady"),
    ("Iisten", "listen"),
    ("Iot", "lot"),
    ("Iine", "line"),
    ("Iight", "light"),
    ("Iive", "live"),
    ("Iiving", "living"),
    ("Ieast", "least"),
    ("Iearn", "learn"),
    ("Iose", "lose"),
    ("Iost", "lost"),
    ("Iuck", "luck"),
    ("Iucky", "lucky"),
    ("Ietter", "letter"),
    ("Iying", "lying"),
    ("wouId", "would"),
    ("wouIdn't", "wouldn't"),
    ("couId", "could"),
    ("couIdn't", "couldn't"),
    ("shouId", "should"),
    ("shouIdn't", "shouldn't"),
    ("feeI", "feel"),
    ("reaIIy", "really"),
    ("reaIly", "really"),
    ("realIy", "really"),
    ("oId", "old"),
    ("heIp", "help"),
    ("heIIo", "hello"),
    ("heIlo", "hello"),
    ("fiIm", "film"),
    ("peopIe", "people"),
    ("probIem", "problem"),
    ("onIy", "only"),
    ("aIways", "always"),
    ("aIready", "already"),
    ("aIright", "alright"),
    ("aIone", "alone"),
    ("aIso", "also"),
    ("himseIf", "himself"),
    ("herseIf", "herself"),
    ("myseIf", "myself"),
    ("yourseIf", "yourself"),
    ("tabIe", "table"),
    ("possibIe", "possible"),
    ("simpIe", "simple"),
    ("famiIy", "family"),
    ("pIease", "please"),
    ("pIace", "place"),
    ("pIan", "plan"),
    ("pIay", "play"),
    ("cIose", "close"),
    ("cIear", "clear"),
    ("bIood", "blood"),
    ("fIoor", "floor"),
    ("gIad", "glad"),
    ("girI", "girl"),
    ("worId", "world"),
    ("toId", "told"),
    ("hoId", "hold"),
    ("coId", "cold"),
    ("caIl", "call"),
    ("caIled", "called"),
    ("feIt", "felt"),
    ("heIl", "hell"),
]

# Regex repairs for the same confusions where a word list would never end
_CHARACTER_REGEX = [
    (r"(?<![\w'])l(?=[\s?!.,]|$)", "I", "standalone lowercase l as pronoun I"),
    (r"(?<=[a-z])II(?=[a-z]|\b)", "ll", "double capital I inside a lowercase word"),
    (r"'II\b", "'ll", "contraction 'II read for 'll"),
    (r"(?<=[a-z])1(?=[a-z])", "l", "digit one inside a word"),
    (r"\b1(?='(?:m|ll|ve|d)\b)", "I", "digit one as pronoun I"),
    (r"(?<=[a-z])0(?=[a-z])", "o", "digit zero inside a lowercase word"),
    (r"(?<=[A-Z])0(?=[A-Z])", "O", "digit zero inside an uppercase word"),
    (r"\b0(?=[A-Z]\b)", "O", "digit zero starting a short uppercase word"),
    (r"(?<=\b[A-Z])0\b", "O", "digit zero ending a short uppercase word"),
    (r"(?<!\w)0(?=[a-z]{2,}\b)", "O", "digit zero starting a word"),
]

# "rn" read where "m" was rendered
_RN_FOR_M = [
    ("rne", "me"),
    ("rny", "my"),
    ("rnore", "more"),
    ("rnake", "make"),
    ("rnan", "man"),
    ("rnay", "may"),
    ("rnaybe", "maybe"),
    ("rnuch", "much"),
    ("rnust", "must"),
    ("rnind", "mind"),
    ("rninute", "minute"),
    ("rninutes", "minutes"),
    ("rnean", "mean"),
    ("rnoney", "money"),
    ("rnorning", "morning"),
    ("rnother", "mother"),
    ("rnonth", "month"),
    ("rnurder", "murder"),
    ("rnarried", "married"),
    ("rnusic", "music"),
    ("rnyself", "myself"),
    ("rnoment", "moment"),
    ("rnister", "mister"),
    ("tirne", "time"),
    ("tirnes", "times"),
    ("sornething", "something"),
    ("sorneone", "someone"),
    ("sornebody", "somebody"),
    ("frorn", "from"),
    ("horne", "home"),
    ("corne", "come"),
    ("corning", "coming"),
    ("sorne", "some"),
    ("narne", "name"),
    ("sarne", "same"),
    ("problern", "problem"),
    ("thern", "them"),
    ("whorn", "whom"),
    ("alrnost", "almost"),
    ("tearn", "team"),
    ("drearn", "dream"),
    ("nurnber", "number"),
    ("rernember", "remember"),
    ("everytirne", "everytime"),
    ("sornetimes", "sometimes"),
    ("gorne", "gone"),
    ("becorne", "become"),
    ("welcorne", "welcome"),
    ("arn", "am"),
]

# "vv" read where "w" was rendered
_VV_FOR_W = [
    ("vvhat", "what"),
    ("vvhen", "when"),
    ("vvhere", "where"),
    ("vvho", "who"),
    ("vvhy", "why"),
    ("vvill", "will"),
    ("vvith", "with"),
    ("vvant", "want"),
    ("vvas", "was"),
    ("vve", "we"),
    ("vvell", "well"),
    ("vvay", "way"),
    ("vvork", "work"),
    ("vvait", "wait"),
    ("vvorld", "world"),
    ("vvoman", "woman"),
    ("vvomen", "women"),
    ("vvater", "water"),
    ("vvrong", "wrong"),
    ("vvatch", "watch"),
    ("vvon't", "won't"),
    ("vvhich", "which"),
    ("vvhile", "while"),
    ("vvife", "wife"),
    ("vvould", "would"),
    ("knovv", "know"),
    ("novv", "now"),
    ("hovv", "how"),
    ("shovv", "show"),
    ("allovv", "allow"),
    ("tomorrovv", "tomorrow"),
    ("follovv", "follow"),
]

# "cl" read where "d" was rendered
_CL_FOR_D = [
    ("clon't", "don't"),
    ("clid", "did"),
    ("clidn't", "didn't"),
    ("cleacl", "dead"),
    ("woulcl", "would"),
    ("coulcl", "could"),
    ("shoulcl", "should"),
    ("goocl", "good"),
    ("neecl", "need"),
    ("olcl", "old"),
    ("saicl", "said"),
    ("frienc", "friend"),
    ("ancl", "and"),
]

# "li" or "b" read where "h" was rendered
_H_MISREADS = [
    ("tbe", "the"),
    ("tlie", "the"),
    ("tliat", "that"),
    ("tbat", "that"),
    ("tliis", "this"),
    ("tbis", "this"),
    ("tliey", "they"),
    ("tbey", "they"),
    ("tliere", "there"),
    ("tbere", "there"),
    ("tlien", "then"),
    ("tben", "then"),
    ("tliink", "think"),
    ("tbink", "think"),
    ("wliat", "what"),
    ("wbat", "what"),
    ("wlio", "who"),
    ("wbo", "who"),
    ("wlien", "when"),
    ("wben", "when"),
    ("wliy", "why"),
    ("wby", "why"),
    ("liave", "have"),
    ("bave", "have"),
    ("liere", "here"),
    ("witli", "with"),
    ("notliing", "nothing"),
    ("sometliing", "something"),
    ("anytliing", "anything"),
    ("everytliing", "everything"),
    ("rigbt", "right"),
    ("nigbt", "night"),
    ("tonigbt", "tonight"),
    ("tbanks", "thanks"),
    ("tlianks", "thanks"),
    ("mucli", "much"),
    ("sucli", "such"),
    ("wliere", "where"),
    ("wbere", "where"),
    ("sbe", "she"),
    ("slie", "she"),
    ("bim", "him"),
]

# Words OCR split with a stray space
_SPLIT_WORDS = [
    ("wh at", "what"),
    ("th e", "the"),
    ("y ou", "you"),
    ("th at", "that"),
    ("th is", "this"),
    ("wh y", "why"),
    ("wh en", "when"),
    ("wh ere", "where"),
    ("th ere", "there"),
    ("th ey", "they"),
    ("kn ow", "know"),
    ("bec ause", "because"),
    ("som ething", "something"),
    ("an ything", "anything"),
    ("ev erything", "everything"),
    ("pl ease", "please"),
    ("rig ht", "right"),
]

# Words OCR merged by dropping a space
_MERGED_WORDS = [
    ("ofthe", "of the"),
    ("inthe", "in the"),
    ("tothe", "to the"),
    ("onthe", "on the"),
    ("atthe", "at the"),
    ("forthe", "for the"),
    ("andthe", "and the"),
    ("isthe", "is the"),
    ("fromthe", "from the"),
    ("withthe", "with the"),
    ("ifyou", "if you"),
    ("ofyou", "of you"),
    ("doyou", "do you"),
    ("areyou", "are you"),
    ("canyou", "can you"),
    ("thankyou", "thank you"),
    ("foryou", "for you"),
    ("toyou", "to you"),
    ("withyou", "with you"),
    ("aboutyou", "about you"),
    ("fromyou", "from you"),
    ("ofmy", "of my"),
    ("ofher", "of her"),
    ("ofhis", "of his"),
    ("ofthem", "of them"),
    ("ofyour", "of your"),
    ("ofit", "of it"),
    ("isit", "is it"),
    ("doit", "do it"),
    ("getit", "get it"),
    ("wantto", "want to"),
    ("haveto", "have to"),
    ("goingto", "going to"),
    ("needto", "need to"),
    ("gotto", "got to"),
    ("aboutit", "about it"),
    ("alot", "a lot"),
]

# Contractions with the apostrophe lost
_CONTRACTIONS = [
    ("didnt", "didn't"),
    ("doesnt", "doesn't"),
    ("dont", "don't"),
    ("isnt", "isn't"),
    ("wasnt", "wasn't"),
    ("werent", "weren't"),
    ("arent", "aren't"),
    ("couldnt", "couldn't"),
    ("wouldnt", "wouldn't"),
    ("shouldnt", "shouldn't"),
    ("havent", "haven't"),
    ("hasnt", "hasn't"),
    ("hadnt", "hadn't"),
    ("mustnt", "mustn't"),
    ("youre", "you're"),
    ("theyre", "they're"),
    ("youve", "you've"),
    ("theyve", "they've"),
    ("weve", "we've"),
    ("youll", "you'll"),
    ("theyll", "they'll"),
    ("thats", "that's"),
    ("whats", "what's"),
    ("wheres", "where's"),
    ("theres", "there's"),
    ("heres", "here's"),
    ("lets go", "let's go"),
    ("Im", "I'm"),
    ("Ive", "I've"),
]

_NORMALIZATION_REGEX = [
    (r"[‘’]", "'", "typographic single quote"),
    (r"''", '"', "doubled apostrophe as double quote"),
    (r"(?<=\w) '(?=(?:s|t|re|ve|ll|d|m)\b)", "'", "space before contraction apostrophe"),
    (r"(?<=\w)' (?=(?:s|t|re|ve|ll|d|m)\b)", "'", "space after contraction apostrophe"),
    (r"(?<=\S) {2,}(?=\S)", " ", "repeated spaces"),
]

_PUNCTUATION_REGEX = [
    (r"(?<=\S)\s+(?=[,!?;])", "", "space before punctuation"),
    (r"(?<=\w)\s+\.(?!\.)", ".", "space before period"),
    (r",{2,}", ",", "repeated comma"),
    (r"(?<=[a-z]),(?=[A-Za-z])", ", ", "missing space after comma"),
    (r"(?<=[a-z])([.?!])(?=[A-Z][a-z])", r"\1 ", "missing space after sentence end"),
    (r"\(\s+", "(", "space after opening parenthesis"),
    (r"\s+\)", ")", "space before closing parenthesis"),
    (r"\[\s+", "[", "space after opening bracket"),
    (r"\s+\]", "]", "space before closing bracket"),
    (r"[ \t]+$", "", "trailing whitespace"),
]

_MARKER_REGEX = [
    (r"^#(?=\s)", "♪", "music note read as hash at line start"),
    (r"(?<=\s)#$", "♪", "music note read as hash at line end"),
    (r"^♪(?=\w)", "♪ ", "missing space after opening music note"),
    (r"(?<=\w)♪$", " ♪", "missing space before closing music note"),
]


def _regex(entries, category: str) -> List[CorrectionRule]:
    return [CorrectionRule(pattern, repl, REGEX, category, desc) for pattern, repl, desc in entries]


DEFAULT_RULES: Tuple[CorrectionRule, ...] = tuple(
    _regex(_NORMALIZATION_REGEX, "normalization")
    + _words(_L_FOR_I, "character_confusion")
    + _words(_I_FOR_L, "character_confusion")
    + _regex(_CHARACTER_REGEX, "character_confusion")
    + _words(_RN_FOR_M, "character_confusion", capitalize=True)
    + _words(_VV_FOR_W, "character_confusion", capitalize=True)
    + _words(_CL_FOR_D, "character_confusion", capitalize=True)
    + _words(_H_MISREADS, "character_confusion", capitalize=True)
    + _words(_SPLIT_WORDS, "split_words", capitalize=True)
    + _words(_MERGED_WORDS, "merged_words", capitalize=True)
    + _words(_CONTRACTIONS, "contractions", capitalize=True)
    + _regex(_PUNCTUATION_REGEX, "punctuation")
    + _regex(_MARKER_REGEX, "markers")
)


def rules_by_category(rules: Iterable[CorrectionRule] = DEFAULT_RULES) -> dict:
    """Group rules by category, preserving table order inside each group."""
    grouped = {}
    for rule in rules:
        grouped.setdefault(rule.category, []).append(rule)
    return grouped
