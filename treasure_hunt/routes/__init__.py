"""HTTP route modules, one APIRouter per resource."""
