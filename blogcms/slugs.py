import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Return a URL-safe, lowercase slug derived from *text*.

    Accents are folded to their base letter ("Déjà" -> "deja") and every
    run of other characters collapses into a single dash.  The result may
    be empty when *text* holds no letters or digits.
    """
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub("-", stripped.lower()).strip("-")
