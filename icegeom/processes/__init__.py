from . import time
from . import geometry
from . import driving_stress
from . import thk
