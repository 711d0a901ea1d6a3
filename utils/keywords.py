"""
Keyword derivation for product names (Portuguese marketplace listings).
"""
import re
import unicodedata

# Function words plus the marketing filler sellers pad their titles with.
PT_STOPWORDS = frozenset([
    "de", "para", "com", "em", "um", "uma", "e", "ou", "a", "o",
    "da", "do", "das", "dos", "na", "no", "nas", "nos", "por", "ao", "aos",
    "pelo", "pela", "pelos", "pelas",
    "kit", "pcs", "unidades", "unidade", "pacote", "conjunto",
    "promocao", "promo", "frete", "gratis", "oferta", "original",
    "novo", "nova", "qualidade", "premium", "envio", "rapido", "entrega",
    "brasil", "pronta", "estoque", "loja", "oficial",
])

FULL_NAME_LIMIT = 60
MAIN_PHRASE_WORDS = 4
MAX_SINGLE_WORDS = 6


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def clean_product_name(name: str) -> str:
    """Lower-case, accent-free, punctuation-free, single-spaced."""
    lowered = strip_accents((name or "").lower())
    lowered = re.sub(r"[^\w\s]|_", " ", lowered)
    return re.sub(r"\s+", " ", lowered).strip()


def generate_keywords(name: str):
    """
    Return the ordered keyword set for a product name:
    the cleaned name (capped), the first four meaningful words joined,
    then up to six single words. Duplicates and blanks are dropped.
    """
    cleaned = clean_product_name(name)
    words = [w for w in cleaned.split(" ") if len(w) > 1 and w not in PT_STOPWORDS]
    words = words[:MAX_SINGLE_WORDS]
    candidates = [cleaned[:FULL_NAME_LIMIT].strip(), " ".join(words[:MAIN_PHRASE_WORDS]), *words]

    keywords = []
    for candidate in candidates:
        if candidate and candidate not in keywords:
            keywords.append(candidate)
    return keywords
