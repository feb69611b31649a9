from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SubmitField, IntegerField, SelectField, BooleanField
from wtforms.validators import DataRequired, InputRequired, Email, EqualTo, Length, Optional, NumberRange, ValidationError
from models import CATEGORIES, OTHER

class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])
    submit = SubmitField("Sign In")

class SignupForm(FlaskForm):
    name = StringField("Full name", validators=[Optional(), Length(max=120)])
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=6)])
    password2 = PasswordField("Confirm Password", validators=[DataRequired(), EqualTo('password')])
    submit = SubmitField("Create Account")

class ForgotPasswordForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    submit = SubmitField("Send Link")

class ResetPasswordForm(FlaskForm):
    new_password = PasswordField("New Password", validators=[DataRequired(), Length(min=6)])
    new_password2 = PasswordField("Confirm Password", validators=[DataRequired(), EqualTo('new_password')])
    submit = SubmitField("Update Password")

class PickupRequestForm(FlaskForm):
    category = SelectField("Item Type", choices=[(c, c) for c in CATEGORIES], default='Laptop', validators=[DataRequired()])
    other_label = StringField("Describe the item", validators=[Length(max=120)])
    quantity = IntegerField("Quantity", default=1, validators=[InputRequired(), NumberRange(min=1)])
    date = StringField("Preferred Date (YYYY-MM-DD)", validators=[DataRequired()])
    time = StringField("Preferred Time", validators=[DataRequired()])
    phone = StringField("Mobile", validators=[DataRequired(), Length(max=30)])
    address = StringField("Pickup Address", validators=[DataRequired(), Length(max=255)])
    submit = SubmitField("Confirm Request")

    def validate_other_label(self, field):
        if self.category.data == OTHER and not (field.data or '').strip():
            raise ValidationError("Describe the item when choosing Other.")

class WithdrawForm(FlaskForm):
    confirm = BooleanField("Yes, withdraw this request", validators=[DataRequired(message="Please confirm the withdrawal.")])
    submit = SubmitField("Withdraw")

class ActionForm(FlaskForm):
    submit = SubmitField("Go")
