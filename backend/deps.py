from fastapi import Request


def get_authors(request: Request):
    return request.app.state.locator.get("Authors")


def get_articles(request: Request):
    return request.app.state.locator.get("Articles")
