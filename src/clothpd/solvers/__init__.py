from clothpd.solvers.cg import CGResult, ConjugateGradient
from clothpd.solvers.stepper import Pin, Stage, Stepper

__all__ = ["CGResult", "ConjugateGradient", "Pin", "Stage", "Stepper"]
