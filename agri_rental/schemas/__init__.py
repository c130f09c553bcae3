from agri_rental.schemas.auth import (
    UserResponse,
    AuthMeResponse,
    Token,
    TokenData,
    LoginRequest,
)
from agri_rental.schemas.equipment import (
    EquipmentCategoryCreate,
    EquipmentCategoryUpdate,
    EquipmentCategoryResponse,
    EquipmentCreate,
    EquipmentUpdate,
    EquipmentResponse,
    EquipmentListResponse,
)
from agri_rental.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySummaryResponse,
    AvailabilityUpdate,
    FeeQuoteResponse,
    SelectionRequest,
    SelectionResponse,
)
from agri_rental.schemas.rental_request import (
    RentalRequestCreate,
    RentalRequestAction,
    RentalRequestResponse,
    RentalRequestListResponse,
    CredentialScan,
    CredentialResponse,
)
