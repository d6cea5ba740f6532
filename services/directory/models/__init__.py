from .schools import School, SchoolType
