# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Importamos los routers de la capa de infraestructura
from group_billing.infrastructure.api.routers import group_billing_router

app = FastAPI(
    title="API de Facturación de Actividades Grupales",
    description="Genera de una vez las facturas de los participantes de una actividad grupal.",
    version="1.0.0"
)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(group_billing_router.router)


@app.get("/", tags=["Health Check"])
def read_root():
    return {"status": "ok", "message": "Servicio de facturación grupal activo"}
