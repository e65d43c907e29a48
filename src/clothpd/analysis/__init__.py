from clothpd.analysis.model import ClothModel
from clothpd.analysis.assembly import SystemBuilder, assemble_sparse

__all__ = ["ClothModel", "SystemBuilder", "assemble_sparse"]
