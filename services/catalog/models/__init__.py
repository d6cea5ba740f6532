from .subjects import Subject, EducationStage
from .materials import Material
