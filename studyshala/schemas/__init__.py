# Pydantic schemas
from studyshala.schemas.auth import (
    UserSnapshot,
    CurrentUserResponse,
    TokenResponse,
    MessageResponse,
)
from studyshala.schemas.material import (
    MaterialCreate,
    MaterialFileResponse,
    MaterialResponse,
    MaterialListResponse,
    UploadResponse,
)
from studyshala.schemas.student import (
    RedeemCodeRequest,
    RedeemCodeResponse,
    SaveMaterialRequest,
    SaveMaterialResponse,
    SavedMaterialItem,
    SavedMaterialsResponse,
    AccessHistoryItem,
    AccessHistoryResponse,
    MaterialFilesResponse,
)
