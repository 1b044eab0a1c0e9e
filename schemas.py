from marshmallow import EXCLUDE, Schema, fields


class EnumValue(fields.Field):
    """Dump an ``Enum`` member as its value."""

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return getattr(value, "value", value)


class UserSchema(Schema):
    id = fields.Int()
    name = fields.Str()
    email = fields.Str()
    role = EnumValue()
    company_key = fields.Str(data_key="companyKey", allow_none=True)


# --- job workers ------------------------------------------------------------


class JobWorkerSchema(Schema):
    id = fields.UUID()
    company_id = fields.Int(data_key="companyId")
    worker_code = fields.Str(data_key="workerCode")
    name = fields.Str()
    phone_number = fields.Str(data_key="phoneNumber")
    alternate_phone_number = fields.Str(data_key="alternatePhoneNumber", allow_none=True)
    email = fields.Str(allow_none=True)
    address = fields.Dict(allow_none=True)
    aadhar_number = fields.Str(data_key="aadharNumber", allow_none=True)
    pan_number = fields.Str(data_key="panNumber", allow_none=True)
    gst_number = fields.Str(data_key="gstNumber", allow_none=True)
    bank_details = fields.Dict(data_key="bankDetails", allow_none=True)
    specialization = fields.List(fields.Str())
    experience = fields.Float(allow_none=True)
    skill_level = EnumValue(data_key="skillLevel")
    hourly_rate = fields.Float(data_key="hourlyRate", allow_none=True)
    daily_rate = fields.Float(data_key="dailyRate", allow_none=True)
    status = EnumValue()
    is_active = fields.Bool(data_key="isActive")
    notes = fields.Str(allow_none=True)
    tags = fields.List(fields.Str())
    created_by_id = fields.Int(data_key="createdBy")
    updated_by_id = fields.Int(data_key="updatedBy", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt", dump_only=True)
    updated_at = fields.DateTime(data_key="updatedAt", dump_only=True)


class JobWorkerPayloadSchema(Schema):
    """Maps the camelCase request body onto service field names."""

    class Meta:
        unknown = EXCLUDE

    company_id = fields.Int(data_key="companyId", allow_none=True)
    worker_code = fields.Str(data_key="workerCode", allow_none=True)
    name = fields.Str(allow_none=True)
    phone_number = fields.Str(data_key="phoneNumber", allow_none=True)
    alternate_phone_number = fields.Str(data_key="alternatePhoneNumber", allow_none=True)
    email = fields.Str(allow_none=True)
    address = fields.Dict(allow_none=True)
    aadhar_number = fields.Str(data_key="aadharNumber", allow_none=True)
    pan_number = fields.Str(data_key="panNumber", allow_none=True)
    gst_number = fields.Str(data_key="gstNumber", allow_none=True)
    bank_details = fields.Dict(data_key="bankDetails", allow_none=True)
    specialization = fields.List(fields.Str(), allow_none=True)
    experience = fields.Decimal(allow_none=True)
    skill_level = fields.Str(data_key="skillLevel", allow_none=True)
    hourly_rate = fields.Decimal(data_key="hourlyRate", allow_none=True)
    daily_rate = fields.Decimal(data_key="dailyRate", allow_none=True)
    status = fields.Str(allow_none=True)
    is_active = fields.Bool(data_key="isActive", allow_none=True)
    notes = fields.Str(allow_none=True)
    tags = fields.List(fields.Str(), allow_none=True)


class WorkerSummarySchema(Schema):
    total_assignments = fields.Int(data_key="totalAssignments")
    active_assignments = fields.Int(data_key="activeAssignments")
    completed_assignments = fields.Int(data_key="completedAssignments")
    assignments_by_status = fields.Dict(keys=fields.Str(), values=fields.Int(), data_key="assignmentsByStatus")
    total_materials_given = fields.Float(data_key="totalMaterialsGiven")
    total_materials_used = fields.Float(data_key="totalMaterialsUsed")
    total_materials_returned = fields.Float(data_key="totalMaterialsReturned")
    total_materials_wasted = fields.Float(data_key="totalMaterialsWasted")
    total_materials_remaining = fields.Float(data_key="totalMaterialsRemaining")
    total_amount_earned = fields.Float(data_key="totalAmountEarned")
    total_amount_pending = fields.Float(data_key="totalAmountPending")


class JobWorkerWithSummarySchema(Schema):
    worker = fields.Nested(JobWorkerSchema)
    summary = fields.Nested(WorkerSummarySchema)


# --- assignments ------------------------------------------------------------


class AssignmentMaterialSchema(Schema):
    index = fields.Int(attribute="position")
    item_id = fields.Str(data_key="itemId")
    item_name = fields.Str(data_key="itemName")
    item_code = fields.Str(data_key="itemCode", allow_none=True)
    category_id = fields.Str(data_key="categoryId", allow_none=True)
    category_name = fields.Str(data_key="categoryName", allow_none=True)
    unit = fields.Str()
    quantity_given = fields.Float(data_key="quantityGiven")
    quantity_used = fields.Float(data_key="quantityUsed")
    quantity_returned = fields.Float(data_key="quantityReturned")
    quantity_wasted = fields.Float(data_key="quantityWasted")
    quantity_remaining = fields.Float(data_key="quantityRemaining")
    rate = fields.Float(allow_none=True)
    total_value = fields.Float(data_key="totalValue", allow_none=True)
    notes = fields.Str(allow_none=True)


class MaterialPayloadSchema(Schema):
    """Material line input; derived quantities sent by clients are dropped."""

    class Meta:
        unknown = EXCLUDE

    item_id = fields.Str(data_key="itemId", allow_none=True)
    item_name = fields.Str(data_key="itemName", allow_none=True)
    item_code = fields.Str(data_key="itemCode", allow_none=True)
    category_id = fields.Str(data_key="categoryId", allow_none=True)
    category_name = fields.Str(data_key="categoryName", allow_none=True)
    unit = fields.Str(allow_none=True)
    quantity_given = fields.Decimal(data_key="quantityGiven", allow_none=True)
    quantity_used = fields.Decimal(data_key="quantityUsed", allow_none=True)
    quantity_returned = fields.Decimal(data_key="quantityReturned", allow_none=True)
    quantity_wasted = fields.Decimal(data_key="quantityWasted", allow_none=True)
    rate = fields.Decimal(allow_none=True)
    notes = fields.Str(allow_none=True)
    version = fields.Int(allow_none=True)


class JobWorkerAssignmentSchema(Schema):
    id = fields.UUID()
    company_id = fields.Int(data_key="companyId")
    worker_id = fields.UUID(data_key="workerId")
    worker_name = fields.Str(data_key="workerName")
    worker_code = fields.Str(data_key="workerCode")
    assignment_number = fields.Str(data_key="assignmentNumber")
    job_type = EnumValue(data_key="jobType")
    job_description = fields.Str(data_key="jobDescription", allow_none=True)
    status = EnumValue()
    assigned_date = fields.DateTime(data_key="assignedDate")
    start_date = fields.DateTime(data_key="startDate", allow_none=True)
    expected_completion_date = fields.DateTime(data_key="expectedCompletionDate", allow_none=True)
    actual_completion_date = fields.DateTime(data_key="actualCompletionDate", allow_none=True)
    materials = fields.List(fields.Nested(AssignmentMaterialSchema))
    output_quantity = fields.Float(data_key="outputQuantity", allow_none=True)
    output_unit = fields.Str(data_key="outputUnit", allow_none=True)
    output_quality = EnumValue(data_key="outputQuality")
    output_notes = fields.Str(data_key="outputNotes", allow_none=True)
    job_rate = fields.Float(data_key="jobRate", allow_none=True)
    total_amount = fields.Float(data_key="totalAmount", allow_none=True)
    advance_paid = fields.Float(data_key="advancePaid")
    balance_amount = fields.Float(data_key="balanceAmount", allow_none=True)
    payment_status = EnumValue(data_key="paymentStatus")
    payment_date = fields.DateTime(data_key="paymentDate", allow_none=True)
    quality_rating = fields.Int(data_key="qualityRating", allow_none=True)
    quality_notes = fields.Str(data_key="qualityNotes", allow_none=True)
    remarks = fields.Str(allow_none=True)
    issues = fields.List(fields.Str())
    created_by_id = fields.Int(data_key="createdBy")
    updated_by_id = fields.Int(data_key="updatedBy", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt", dump_only=True)
    updated_at = fields.DateTime(data_key="updatedAt", dump_only=True)
    version = fields.Int()


class AssignmentPayloadSchema(Schema):
    """Assignment input; snapshot and derived fields are not accepted."""

    class Meta:
        unknown = EXCLUDE

    company_id = fields.Int(data_key="companyId", allow_none=True)
    worker_id = fields.Str(data_key="workerId", allow_none=True)
    assignment_number = fields.Str(data_key="assignmentNumber", allow_none=True)
    job_type = fields.Str(data_key="jobType", allow_none=True)
    job_description = fields.Str(data_key="jobDescription", allow_none=True)
    status = fields.Str(allow_none=True)
    assigned_date = fields.Raw(data_key="assignedDate", allow_none=True)
    expected_completion_date = fields.Raw(data_key="expectedCompletionDate", allow_none=True)
    payment_date = fields.Raw(data_key="paymentDate", allow_none=True)
    materials = fields.List(fields.Nested(MaterialPayloadSchema), allow_none=True)
    output_quantity = fields.Decimal(data_key="outputQuantity", allow_none=True)
    output_unit = fields.Str(data_key="outputUnit", allow_none=True)
    output_quality = fields.Str(data_key="outputQuality", allow_none=True)
    output_notes = fields.Str(data_key="outputNotes", allow_none=True)
    job_rate = fields.Decimal(data_key="jobRate", allow_none=True)
    total_amount = fields.Decimal(data_key="totalAmount", allow_none=True)
    advance_paid = fields.Decimal(data_key="advancePaid", allow_none=True)
    quality_rating = fields.Raw(data_key="qualityRating", allow_none=True)
    quality_notes = fields.Str(data_key="qualityNotes", allow_none=True)
    remarks = fields.Str(allow_none=True)
    issues = fields.List(fields.Str(), allow_none=True)
    version = fields.Int(allow_none=True)


class StatusPayloadSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.Str(allow_none=True)
    version = fields.Int(allow_none=True)


class AssignmentSummarySchema(Schema):
    total_materials = fields.Int(data_key="totalMaterials")
    total_given = fields.Float(data_key="totalGiven")
    total_used = fields.Float(data_key="totalUsed")
    total_returned = fields.Float(data_key="totalReturned")
    total_remaining = fields.Float(data_key="totalRemaining")
    total_wasted = fields.Float(data_key="totalWasted")
    total_value = fields.Float(data_key="totalValue")


class AssignmentWithSummarySchema(Schema):
    assignment = fields.Nested(JobWorkerAssignmentSchema)
    summary = fields.Nested(AssignmentSummarySchema)


class MaterialReportRowSchema(Schema):
    item_id = fields.Str(data_key="itemId")
    item_name = fields.Str(data_key="itemName")
    item_code = fields.Str(data_key="itemCode", allow_none=True)
    unit = fields.Str()
    total_given = fields.Float(data_key="totalGiven")
    total_used = fields.Float(data_key="totalUsed")
    total_returned = fields.Float(data_key="totalReturned")
    total_remaining = fields.Float(data_key="totalRemaining")
    total_wasted = fields.Float(data_key="totalWasted")
    total_value = fields.Float(data_key="totalValue")
