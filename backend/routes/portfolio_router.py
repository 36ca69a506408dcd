import logging
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional

from exceptions.exceptions import ConfigurationException, InvalidTokenException
from routes.dependencies import Services, get_portfolio_service, get_services, get_sync_service
from services.kite_sync import KiteSyncService
from services.portfolio_service import PortfolioService
from util.portfolio_schema import PortfolioView

logger = logging.getLogger("portfolio")
logger.setLevel(logging.INFO)

router = APIRouter()


class SyncRequest(BaseModel):
    account: Optional[str] = None


@router.get("/portfolio", response_model=PortfolioView)
def get_portfolio(response: Response, service: PortfolioService = Depends(get_portfolio_service)):
    logger.debug("Building portfolio view from snapshots")
    try:
        view = service.get_portfolio()
    except Exception:
        logger.exception("Failed to load portfolio snapshots")
        raise HTTPException(status_code=500, detail="Failed to load portfolio data")
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return view


@router.get("/portfolio/live", response_model=PortfolioView)
def get_live_portfolio(service: KiteSyncService = Depends(get_sync_service)):
    logger.debug("Fetching live portfolio from Kite")
    try:
        return service.fetch_combined_portfolio()
    except Exception:
        logger.exception("Failed to fetch live portfolio")
        raise HTTPException(status_code=500, detail="Failed to fetch live portfolio")


@router.get("/kite/accounts")
def list_accounts(services: Services = Depends(get_services)):
    return services.accounts.public()


@router.post("/kite/sync")
def sync_account(
    account: Optional[str] = Query(None),
    body: Optional[SyncRequest] = Body(None),
    service: KiteSyncService = Depends(get_sync_service),
):
    account_id = account or (body.account if body else None)
    if not account_id:
        raise HTTPException(status_code=400, detail="Missing account parameter")

    logger.debug("Sync requested for %s", account_id)
    try:
        portfolio = service.try_sync_account(account_id)
    except ConfigurationException as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTokenException as e:
        logger.info("Sync for %s needs re-authentication", account_id)
        return JSONResponse(
            status_code=401,
            content={"success": False, "reauth_required": True, "message": str(e)},
        )
    except Exception as e:
        logger.error("Sync for %s failed: %s", account_id, e)
        return JSONResponse(status_code=500, content={"success": False, "message": str(e)})

    return {"success": True, "fetched_at": portfolio.fetched_at}


@router.post("/kite/sync-all")
def sync_all_accounts(service: KiteSyncService = Depends(get_sync_service)):
    report = service.sync_all_accounts()
    return report.to_dict()
