from fastapi import APIRouter, Query, Depends, HTTPException
from pydantic import BaseModel
from minitable import Table
from minitable.errors import RecordNotFoundError
from deps import get_authors

router = APIRouter()


class AuthorCreate(BaseModel):
    name: str
    email: str | None = None


class AuthorUpdate(BaseModel):
    name: str | None = None
    email: str | None = None


def _author_out(author):
    return {
        "author_id": author.id,
        "name": author.name,
        "email": author.email,
        "created": author.created,
        "modified": author.modified,
    }


def _get_or_404(authors, author_id):
    try:
        return authors.get(author_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Author not found")


@router.post("/api/authors")
def create_author(author: AuthorCreate, authors: Table = Depends(get_authors)):
    entity = authors.new_entity(author.model_dump(exclude_none=True))
    if not authors.save(entity):
        raise HTTPException(status_code=422, detail=entity.errors())
    return {**_author_out(entity), "message": "Author created"}


@router.get("/api/authors")
def get_authors_list(
    authors: Table = Depends(get_authors),
    name: str = Query(None),
    order_dir: str = Query("ASC", pattern="^(ASC|DESC)$"),
):
    query = authors.find("all", order={"name": order_dir})
    if name:
        query.where({"name LIKE": f"%{name}%"})
    return [_author_out(a) for a in query]


@router.get("/api/authors/options")
def get_author_options(authors: Table = Depends(get_authors)):
    return authors.find("list", order={"name": "ASC"}).all()


@router.get("/api/authors/{author_id}")
def get_author(author_id: int, authors: Table = Depends(get_authors)):
    return _author_out(_get_or_404(authors, author_id))


@router.put("/api/authors/{author_id}")
def update_author(author_id: int, author: AuthorUpdate, authors: Table = Depends(get_authors)):
    existing = _get_or_404(authors, author_id)
    existing.set(author.model_dump(exclude_none=True))
    if not authors.save(existing):
        raise HTTPException(status_code=422, detail=existing.errors())
    return {**_author_out(existing), "message": "Author updated"}


@router.delete("/api/authors/{author_id}")
def delete_author(author_id: int, authors: Table = Depends(get_authors)):
    existing = _get_or_404(authors, author_id)
    if not authors.delete(existing):
        raise HTTPException(status_code=409, detail="Author could not be deleted")
    return {"message": "Author deleted"}
