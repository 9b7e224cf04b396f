from fastapi import APIRouter, Query, Depends, HTTPException
from pydantic import BaseModel
from minitable import Entity, Table
from minitable.errors import RecordNotFoundError
from deps import get_articles

router = APIRouter()


class AuthorIn(BaseModel):
    name: str
    email: str | None = None


class ArticleCreate(BaseModel):
    title: str
    body: str | None = None
    published: bool = False
    author_id: int | None = None
    author: AuthorIn | None = None


class ArticleUpdate(BaseModel):
    title: str | None = None
    body: str | None = None
    published: bool | None = None
    author_id: int | None = None


def _article_out(article):
    return {
        "article_id": article.id,
        "author_id": article.author_id,
        "title": article.title,
        "body": article.body,
        "published": bool(article.published),
        "created": article.created,
        "modified": article.modified,
    }


def _save_errors(article):
    errors = article.errors()
    if isinstance(article.author, Entity) and article.author.errors():
        errors["author"] = article.author.errors()
    return errors


def _get_or_404(articles, article_id):
    try:
        return articles.get(article_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Article not found")


@router.post("/api/articles")
def create_article(article: ArticleCreate, articles: Table = Depends(get_articles)):
    entity = articles.new_entity(article.model_dump(exclude={"author"}, exclude_none=True))
    if article.author is not None:
        authors = articles.association("Authors").target
        entity.author = authors.new_entity(article.author.model_dump(exclude_none=True))
    if not articles.save(entity):
        raise HTTPException(status_code=422, detail=_save_errors(entity))
    return {**_article_out(entity), "message": "Article created"}


@router.get("/api/articles")
def get_articles_list(
    articles: Table = Depends(get_articles),
    author_id: int = Query(None),
    published: bool = Query(False),
    page: int = Query(None, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    if author_id is not None:
        query = articles.find_by_author_id(author_id)
    elif published:
        query = articles.find("published")
    else:
        query = articles.find("all", order={"id": "ASC"})
    if page is not None:
        query.page(page, limit)
    return [_article_out(a) for a in query]


@router.get("/api/articles/{article_id}")
def get_article(article_id: int, articles: Table = Depends(get_articles)):
    return _article_out(_get_or_404(articles, article_id))


@router.put("/api/articles/{article_id}")
def update_article(article_id: int, article: ArticleUpdate, articles: Table = Depends(get_articles)):
    existing = _get_or_404(articles, article_id)
    existing.set(article.model_dump(exclude_none=True))
    if not articles.save(existing):
        raise HTTPException(status_code=422, detail=_save_errors(existing))
    return {**_article_out(existing), "message": "Article updated"}


@router.delete("/api/articles/{article_id}")
def delete_article(article_id: int, articles: Table = Depends(get_articles)):
    existing = _get_or_404(articles, article_id)
    if not articles.delete(existing):
        raise HTTPException(status_code=409, detail="Article could not be deleted")
    return {"message": "Article deleted"}
