from clothpd.pre.topology import Constraint, GridTopology

__all__ = ["Constraint", "GridTopology"]
