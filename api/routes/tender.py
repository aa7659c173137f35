from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.dependencies import require_role
from core.roles import KONSULTAN, MITRA_TOKO
from core import tender_workflow
from db.db_base import get_db
from schemas.tender import (
    ApprovalSummary,
    AssignmentOfferingsResponse,
    OfferingCreate,
    OfferingDetailResponse,
    OfferingResponse,
    OfferingUpdate,
    SelectWinnerRequest,
    TenderApproveResponse,
    TenderAssignCreate,
    TenderAssignFromReport,
    TenderAssignResponse,
    TenderAssignUpdate,
    TenderProductResponse,
)

router = APIRouter()


# ============== Assignment ==============

@router.get("/assignments", response_model=list[TenderAssignResponse])
def list_assignments(user=Depends(require_role(KONSULTAN)), db: Session = Depends(get_db)):
    return tender_workflow.list_assignments(db)


@router.get("/assignments/open", response_model=list[TenderAssignResponse])
def list_open_assignments(user=Depends(require_role(KONSULTAN, MITRA_TOKO)), db: Session = Depends(get_db)):
    """Assignments partners can see: open and closed, never drafts."""
    return tender_workflow.list_open_assignments(db)


@router.get("/visits/{visit_id}/draft-products", response_model=list[TenderProductResponse])
def draft_products(visit_id: str, user=Depends(require_role(KONSULTAN)), db: Session = Depends(get_db)):
    return tender_workflow.draft_products_from_report(db, visit_id)


@router.post("/assignments", response_model=TenderAssignResponse, status_code=201)
def create_assignment(
    req: TenderAssignCreate,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    return tender_workflow.create_assignment(
        db,
        req.visit_id,
        user["id"],
        deadline=req.deadline,
        message=req.message,
        status=req.status,
        products=[p.model_dump() for p in req.products],
    )


@router.post("/assignments/from-report", response_model=TenderAssignResponse, status_code=201)
def create_assignment_from_report(
    req: TenderAssignFromReport,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    return tender_workflow.create_assignment_from_report(
        db, req.visit_id, user["id"], deadline=req.deadline, message=req.message, status=req.status
    )


@router.get("/assignments/{assign_id}", response_model=TenderAssignResponse)
def get_assignment(assign_id: str, user=Depends(require_role(KONSULTAN, MITRA_TOKO)), db: Session = Depends(get_db)):
    return tender_workflow.assignment_to_dict(tender_workflow.get_assignment_or_404(db, assign_id))


@router.patch("/assignments/{assign_id}", response_model=TenderAssignResponse)
def update_assignment(
    assign_id: str,
    req: TenderAssignUpdate,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    patch = req.model_dump(exclude_unset=True, exclude={"products"})
    products = [p.model_dump() for p in req.products] if req.products is not None else None
    return tender_workflow.update_assignment(db, assign_id, patch, products)


@router.delete("/assignments/{assign_id}")
def delete_assignment(assign_id: str, user=Depends(require_role(KONSULTAN)), db: Session = Depends(get_db)) -> dict:
    tender_workflow.delete_assignment(db, assign_id)
    return {"status": "deleted", "id": assign_id}


# ============== Offering ==============

@router.post("/offerings", response_model=OfferingResponse, status_code=201)
def create_offering(req: OfferingCreate, user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)):
    return tender_workflow.create_offering(
        db, req.tender_assign_id, user["id"], [p.model_dump() for p in req.products]
    )


@router.get("/offerings/mine", response_model=list[OfferingResponse])
def list_my_offerings(user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)):
    return tender_workflow.list_my_offerings(db, user["id"])


@router.get("/offerings/{offering_id}", response_model=OfferingDetailResponse)
def get_offering(
    offering_id: str,
    user=Depends(require_role(KONSULTAN, MITRA_TOKO)),
    db: Session = Depends(get_db),
):
    return tender_workflow.get_offering_detail(db, offering_id, user)


@router.put("/offerings/{offering_id}/products", response_model=OfferingResponse)
def update_offering_products(
    offering_id: str,
    req: OfferingUpdate,
    user=Depends(require_role(MITRA_TOKO)),
    db: Session = Depends(get_db),
):
    return tender_workflow.update_offering_products(
        db, offering_id, user, [p.model_dump() for p in req.products], req.expected_version
    )


@router.delete("/offerings/{offering_id}")
def delete_offering(offering_id: str, user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)) -> dict:
    tender_workflow.delete_offering(db, offering_id, user)
    return {"status": "deleted", "id": offering_id}


# ============== Approval ==============

@router.get("/approvals", response_model=list[ApprovalSummary])
def list_approvals(user=Depends(require_role()), db: Session = Depends(get_db)):
    return tender_workflow.list_approvals(db)


@router.get("/assignments/{assign_id}/offerings", response_model=AssignmentOfferingsResponse)
def list_offerings_for_assignment(assign_id: str, user=Depends(require_role()), db: Session = Depends(get_db)):
    return tender_workflow.list_offerings_for_assignment(db, assign_id)


@router.post("/assignments/{assign_id}/winner", response_model=TenderApproveResponse)
def select_winner(
    assign_id: str,
    req: SelectWinnerRequest,
    user=Depends(require_role()),
    db: Session = Depends(get_db),
):
    """Pick the winning offering; repeating the same choice is a no-op."""
    return tender_workflow.select_winner(db, assign_id, req.tender_offering_id)
