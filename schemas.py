"""
Database Schemas for HeartsUnite Matrimony Platform

Each Pydantic model below maps to a MongoDB collection.
Use these schemas to validate incoming/outgoing data.
"""

from typing import Optional, Literal
from pydantic import BaseModel, Field, EmailStr

UserStatus = Literal["Normal", "Requested", "Admin"]
BiodataType = Literal["Male", "Female"]
BiodataStatus = Literal["Normal", "Requested", "Premium"]
RequestStatus = Literal["Pending", "Approved"]


class User(BaseModel):
    """
    Collection name: "users"
    One record per email, created on first login
    """
    email: EmailStr = Field(..., description="User email (primary identifier)")
    name: Optional[str] = Field(None, description="Display name")
    photo: Optional[str] = Field(None, description="Avatar URL")
    status: Optional[str] = Field(None, description="Requested asks an admin for elevation; new users are stored as Normal otherwise")


class Biodata(BaseModel):
    """
    Collection name: "biodatas"
    Matrimonial profile. biodataId, contactEmail and biodataStatus are set by the server.
    """
    biodataType: BiodataType
    name: str = Field(..., description="Full name")
    profileImage: Optional[str] = None
    dateOfBirth: Optional[str] = Field(None, description="YYYY-MM-DD")
    height: Optional[str] = None
    weight: Optional[str] = None
    age: Optional[int] = Field(None, ge=18, le=100)
    occupation: Optional[str] = None
    race: Optional[str] = None
    fathersName: Optional[str] = None
    mothersName: Optional[str] = None
    permanentDivision: Optional[str] = None
    presentDivision: Optional[str] = None
    expectedPartnerAge: Optional[int] = None
    expectedPartnerHeight: Optional[str] = None
    expectedPartnerWeight: Optional[str] = None
    mobileNumber: Optional[str] = None


class Favorite(BaseModel):
    """
    Collection name: "favBiodatas"
    Snapshot of a biodata saved by a viewer
    """
    biodataId: int
    name: str
    permanentDivision: Optional[str] = None
    occupation: Optional[str] = None
    profileImage: Optional[str] = None


class ContactRequest(BaseModel):
    """
    Collection name: "contactReqs"
    Contact details are copied from the target biodata by the server
    """
    biodataId: int
    transactionId: Optional[str] = Field(None, description="Payment reference")


class SuccessStory(BaseModel):
    """
    Collection name: "successStories"
    """
    selfBiodataId: int
    partnerBiodataId: int
    coupleImage: Optional[str] = None
    marriageDate: Optional[str] = Field(None, description="YYYY-MM-DD")
    review: str
    rating: int = Field(5, ge=1, le=5)
