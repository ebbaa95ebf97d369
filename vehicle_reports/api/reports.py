# vehicle_reports/api/reports.py
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from pydantic import BaseModel

from vehicle_reports.api.deps import get_report_generator, get_report_store
from vehicle_reports.services.report_generator import ReportGenerator
from vehicle_reports.storage.report_store import ReportStore

router = APIRouter()


class GenerateInput(BaseModel):
    vehicleTokenIds: list[str | int] | None = None
    startDate: str | None = None
    endDate: str | None = None


@router.post("/generate")
async def generate_report(body: GenerateInput, generator: ReportGenerator = Depends(get_report_generator)):
    result = await generator.generate(body.vehicleTokenIds, body.startDate, body.endDate)
    return {
        "message": "Report generated successfully",
        "filename": result.filename,
        "recordCount": result.record_count,
        "downloadUrl": f"/api/reports/download/{result.filename}",
    }


@router.get("/download/{filename}")
async def download_report(filename: str, store: ReportStore = Depends(get_report_store)):
    path = store.path_for(filename)
    return FileResponse(path, media_type="text/csv", filename=filename)


@router.get("")
async def list_reports(store: ReportStore = Depends(get_report_store)):
    return {"reports": store.list()}
