import re

_first_cap = re.compile(r'(.)([A-Z][a-z]+)')
_all_cap = re.compile(r'([a-z0-9])([A-Z])')


def underscore(name):
    """``BlogPosts`` -> ``blog_posts``."""
    name = _first_cap.sub(r'\1_\2', name)
    return _all_cap.sub(r'\1_\2', name).replace("-", "_").lower()


def singularize(word):
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith(("sses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def foreign_key_for(name):
    """``Authors`` -> ``author_id``."""
    return singularize(underscore(name)) + "_id"


def join_table_for(*names):
    return "_".join(sorted(underscore(n) for n in names))
