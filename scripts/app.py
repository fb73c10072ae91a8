from __future__ import annotations

import time
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from javaspan.config import GeneratorConfig, load_config
from javaspan.generator import OBJECT_OVERRIDES, Field as JavaField, ObjectMethod
from javaspan.parser import ClassTreeError, find_existing_method, parse_document
from javaspan.patcher import JavaClassProcessor, MethodExistsError, PatchApplyError


def now_ms() -> int:
    return int(time.time() * 1000)


_METHODS = {
    "toString": ObjectMethod.TO_STRING,
    "hashCode": ObjectMethod.HASH_CODE,
    "equals": ObjectMethod.EQUALS,
}


# -----------------------------
# Schemas
# -----------------------------
class SourceRequest(BaseModel):
    text: str = Field(..., description="Full content of the Java source file.")


class CursorRequest(SourceRequest):
    offset: int = Field(..., ge=0, description="Character offset of the cursor.")


class LocateRequest(CursorRequest):
    method: Literal["toString", "hashCode", "equals"]


class IntervalModel(BaseModel):
    start: int
    end: int


class LocateResponse(BaseModel):
    class_name: str
    range: Optional[IntervalModel] = None


class InsertIndexResponse(BaseModel):
    class_name: str
    scope: int
    insert_index: int


class GenerateRequest(CursorRequest):
    kind: Literal["tostring", "hashcode", "equals", "getters", "setters", "withers"]
    fields: List[str] = Field(default_factory=list, description='Fields as "type name" (names only for Object overrides).')
    regenerate: bool = Field(False, description="Replace methods that already exist.")
    layout: Optional[str] = Field(None, description="ToString layout call, e.g. likeIntellij().")
    print_field_names: Optional[bool] = None


class GenerateResponse(BaseModel):
    ok: bool
    latency_ms: int
    text: str
    edits: List[Dict[str, Any]] = Field(default_factory=list)


def create_app(config: Optional[GeneratorConfig] = None) -> FastAPI:
    cfg = config or load_config()
    app = FastAPI(title="javaspan")

    @app.exception_handler(ClassTreeError)
    def class_tree_error(request: Request, exc: ClassTreeError) -> JSONResponse:
        # classes overlap without nesting; the client has to send a fixed source
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "ts": now_ms()}

    @app.post("/classes")
    def classes(req: SourceRequest) -> Dict[str, Any]:
        return parse_document(req.text).to_dict()

    def _pointed(text: str, offset: int):
        doc = parse_document(text)
        java_class = doc.find_pointed_class(offset)
        if java_class is None:
            raise HTTPException(status_code=404, detail="The cursor is not pointing to any Java class")
        return doc, java_class

    @app.post("/locate", response_model=LocateResponse)
    def locate(req: LocateRequest) -> LocateResponse:
        doc, java_class = _pointed(req.text, req.offset)
        interval = find_existing_method(req.text, OBJECT_OVERRIDES[_METHODS[req.method]].method_re, java_class)
        return LocateResponse(
            class_name=java_class.get_name_used_by_class_loader(),
            range=IntervalModel(**interval.to_dict()) if interval else None,
        )

    @app.post("/insert-index", response_model=InsertIndexResponse)
    def insert_index(req: CursorRequest) -> InsertIndexResponse:
        doc, java_class = _pointed(req.text, req.offset)
        return InsertIndexResponse(
            class_name=java_class.get_name_used_by_class_loader(),
            scope=java_class.get_scope(),
            insert_index=java_class.get_insert_index(req.text, req.offset),
        )

    @app.post("/generate", response_model=GenerateResponse)
    def generate(req: GenerateRequest) -> GenerateResponse:
        t0 = now_ms()
        try:
            processor = JavaClassProcessor(req.text, req.offset, cfg)
            names = [f.split()[-1] for f in req.fields if f.strip()]
            if req.kind == "tostring":
                text = processor.insert_or_replace_to_string(
                    names,
                    print_field_names=req.print_field_names,
                    layout=req.layout,
                    regenerate=req.regenerate,
                )
            elif req.kind == "hashcode":
                text = processor.insert_or_replace_hash_code(names, regenerate=req.regenerate)
            elif req.kind == "equals":
                text = processor.insert_or_replace_equals(names, regenerate=req.regenerate)
            else:
                fields = [JavaField.of(processor.java_class.name, f) for f in req.fields]
                accessors = processor.build_accessors(req.kind, fields)
                text = processor.insert_or_replace_accessors(accessors, regenerate=req.regenerate)
        except MethodExistsError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        except PatchApplyError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

        return GenerateResponse(
            ok=True,
            latency_ms=now_ms() - t0,
            text=text,
            edits=[e.to_dict() for e in processor.edits],
        )

    return app


app = create_app()
