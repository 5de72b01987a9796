from HACT.ContinuousTime.HJBsolver import *
from HACT.ContinuousTime.KFsolver import *
from HACT.ContinuousTime.HuggettModel import *
